from setuptools import setup

setup(
  name             = 'profsig',
  version          = '0.1.0',
  description      = 'Profile-likelihood discovery significances with Asimov datasets',
  packages         = [ 'profsig', 'profsig_utils' ],
  install_requires = [ 'numpy>=1.19.5', 'scipy>=1.5.0', 'pandas>=1.1.0', 'matplotlib>=3.3.3', 'PyYAML>=5.1' ],
  extras_require   = {
    'test' : [ 'pytest>=6.0' ],
    'docs' : [ 'sphinx', 'sphinx-rtd-theme>=0.5.1', 'sphinx-argparse>=0.2.5' ],
  },
  entry_points = {
    'console_scripts': [
      'run_sig.py          = profsig_utils.run_sig:run',
      'make_counting_ws.py = profsig_utils.make_counting_ws:run',
    ],
  },
  scripts          = [
    ],
)
