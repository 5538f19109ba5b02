"""Ren'Py script navigation for python-lsp-server."""
