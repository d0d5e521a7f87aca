# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import sphinx_rtd_theme


# -- Project information -----------------------------------------------------

project = 'profsig'
release = '0.1.0'

# -- General configuration ---------------------------------------------------

extensions = [
  'sphinx.ext.autodoc',
  'sphinx.ext.mathjax',
  'sphinx.ext.napoleon',
  'sphinx_rtd_theme',
  'sphinxarg.ext'
]

templates_path = ['_templates']
exclude_patterns = [ '_build' ]

language = 'en'

# The master toctree document.
master_doc = 'index'

# The name of the Pygments (syntax highlighting) style to use.
pygments_style = 'default'


# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_rtd_theme'

# Output file base name for HTML help builder.
htmlhelp_basename = 'profsigdoc'


# -- Options for LaTeX output ------------------------------------------------

latex_elements = {
    'preamble': r'''
    \usepackage{amsmath}
    \usepackage{bm}
    ''',
}

latex_documents = [
    (master_doc, 'profsig.tex', 'profsig Documentation', '', 'manual'),
]

man_pages = [
    (master_doc, 'profsig', 'profsig Documentation', [], 1)
]

mathjax3_config = {
    'tex': {
        'macros': {
            'mhat': [r'\hat{\mu}'],
            'that': [r'\hat{\boldsymbol{\theta}}'],
            'aux' : [r'_{\text{aux}}'],
            'obs' : [r'^{\text{obs}}'],
            'asimov': [r'^{\text{A}}'],
            }
        }
}
