import os
import sys
sys.path.insert(0, os.path.abspath('../..'))  # repo root, so the service packages import

# Sphinx configuration for the Escape Room Finder API docs.
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# Service modules create their tables at import time; point them at a
# throwaway database while autodoc imports them.
os.environ.setdefault("DATABASE_URL", "sqlite:///./docs_build.db")

# -- Project information -----------------------------------------------------

project = 'Escape Room Finder'
copyright = '2025, Ahmad Hlayhel & Boulos Boulos'
author = 'Ahmad Hlayhel & Boulos Boulos'
release = '1.0.0'

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",   # numpy style docstrings
    "sphinx.ext.viewcode",
    "sphinx.ext.autosummary",
]
autosummary_generate = True
napoleon_google_docstring = False
napoleon_numpy_docstring = True
autodoc_member_order = "bysource"

templates_path = ['_templates']
exclude_patterns = []

# -- Options for HTML output -------------------------------------------------

html_theme = 'alabaster'
html_static_path = ['_static']
