#! /usr/bin/env python

__doc__ = """
*Write a counting-experiment workspace*

Builds a workspace describing a counting experiment with a signal
sample scaled by the POI and a background sample with a Gaussian-constrained
normalization uncertainty, together with an observed dataset, and writes
it to a markup file (`--output-file` argument).

Several channels can be defined using the `--channels` argument, in which
case a simultaneous model is built with identical yields in each channel.
"""

from argparse import ArgumentParser, ArgumentDefaultsHelpFormatter
from profsig import make_counting_workspace

####################################################################################################################################
###

def make_parser() :
  parser = ArgumentParser("make_counting_ws.py", formatter_class=ArgumentDefaultsHelpFormatter)
  parser.description = __doc__
  parser.add_argument("-o", "--output-file" , type=str  , required=True , help="Name of the output markup file")
  parser.add_argument("-s", "--signal"      , type=float, default=5     , help="Expected signal yield for POI = 1")
  parser.add_argument("-b", "--background"  , type=float, default=5     , help="Expected background yield")
  parser.add_argument("-u", "--uncertainty" , type=float, default=0.1   , help="Relative uncertainty on the background yield")
  parser.add_argument("-n", "--n-obs"       , type=float, default=10    , help="Observed event count")
  parser.add_argument("-c", "--channels"    , type=str  , default=None  , help="Comma-separated list of channel labels (default: a single channel)")
  parser.add_argument("-w", "--ws-name"     , type=str  , default='combined', help="Name of the workspace")
  parser.add_argument("-v", "--verbosity"   , type=int  , default=0     , help="Verbosity level")
  return parser

def run(argv = None) :
  parser = make_parser()
  options = parser.parse_args(argv)
  if not options :
    parser.print_help()
    return

  channels = options.channels.replace(' ', '').split(',') if options.channels is not None else None
  ws = make_counting_workspace(options.signal, options.background, options.uncertainty, options.n_obs, channels, options.ws_name)
  if options.verbosity > 0 : print(ws)
  ws.save(options.output_file)
  print("INFO: workspace '%s' written to file '%s'." % (ws.name, options.output_file))
  return ws

if __name__ == '__main__' : run()
