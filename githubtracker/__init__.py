"""githubtracker — render GitHub repository activity into markdown documents."""

__version__ = "0.3.0"
