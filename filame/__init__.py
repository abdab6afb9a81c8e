"""filame - track dotfiles and package bundles in a git repository."""

__version__ = "0.1.0"
