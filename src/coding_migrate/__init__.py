"""Coding Migration Tool

Moves source-code repositories from the Coding platform (e.coding.net) to a
GitHub organization: discovers repositories, resolves the destination
repository, transfers content with git clone/push and reports one
consolidated outcome for the whole batch.
"""

__version__ = '0.1.0'

__all__ = ['__version__']
