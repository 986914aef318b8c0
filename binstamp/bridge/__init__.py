"""Bridge layer between binstamp and the network.

Modules
-------
transport
    Retrying ``requests``-based ``download()`` / ``upload()`` / ``exists()``
    with manual redirect following and partial-file cleanup.
"""
