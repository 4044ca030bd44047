# Configuration file for the Sphinx documentation builder.
#
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import os
import sys

# Make torch_erbpower importable without installation
sys.path.insert(0, os.path.abspath('../..'))

from torch_erbpower import __version__  # noqa: E402

# -- Project information -----------------------------------------------------
project = 'torch_erbpower'
copyright = '2026, Stefano Giacomelli'
author = 'Stefano Giacomelli'
release = __version__
version = __version__

# -- General configuration ---------------------------------------------------
extensions = [
    'sphinx.ext.autodoc',           # API docs from docstrings
    'sphinx.ext.napoleon',          # NumPy-style docstrings
    'sphinx.ext.viewcode',          # Links to source
    'sphinx.ext.intersphinx',       # torch / numpy / scipy cross-references
    'sphinx.ext.mathjax',           # LaTeX in docstrings
    'sphinx.ext.doctest',           # Run the Examples sections
    'sphinx_autodoc_typehints',
    'myst_parser',                  # DESIGN.md and other Markdown pages
]

napoleon_google_docstring = False
napoleon_numpy_docstring = True
napoleon_include_init_with_doc = True
napoleon_use_rtype = True
napoleon_attr_annotations = True

autodoc_default_options = {
    'members': True,
    'member-order': 'bysource',
    'undoc-members': True,
}
autodoc_typehints = 'description'
autodoc_typehints_description_target = 'documented'

templates_path = ['_templates']
exclude_patterns = []
source_suffix = {
    '.rst': 'restructuredtext',
    '.md': 'markdown',
}
master_doc = 'index'

# -- Options for HTML output -------------------------------------------------
html_theme = 'sphinx_rtd_theme'
html_theme_options = {
    'navigation_depth': 3,
    'collapse_navigation': False,
}
html_static_path = ['_static']
html_title = f'{project} v{version}'

# -- Extension configuration -------------------------------------------------
intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'torch': ('https://pytorch.org/docs/stable/', None),
    'numpy': ('https://numpy.org/doc/stable/', None),
    'scipy': ('https://docs.scipy.org/doc/scipy/', None),
}

always_document_param_types = True
typehints_fully_qualified = False
