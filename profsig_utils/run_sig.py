#! /usr/bin/env python

__doc__ = """
*Compute discovery significances*

Computes the observed, median expected and injected discovery significances
and p-values for a model stored in a workspace file (`--ws-file` argument).

The median expected significance is computed on the Asimov dataset given by
`--asimov-name`; if it does not exist, it is built after profiling the nuisance
parameters on the observed data at POI = `--mu-profile`. The injected
significance uses an Asimov dataset built with the signal amount given by the
injection parameter (`--injection-par`) if it exists, and by the initial POI
value otherwise.

The results are written to `<output-dir>/<folder>/<mass>.<markup>`.
"""

import os
from argparse import ArgumentParser, ArgumentDefaultsHelpFormatter
from profsig import Workspace, Model, MinimizerOptions, RobustMinimizer, SignificancePipeline
from profsig_utils import process_setvals, process_setconsts, process_setranges
import time

####################################################################################################################################
###

def make_parser() :
  parser = ArgumentParser("run_sig.py", formatter_class=ArgumentDefaultsHelpFormatter)
  parser.description = __doc__
  parser.add_argument("-f", "--ws-file"             , type=str  , required=True               , help="Name of markup file containing the workspace")
  parser.add_argument("-w", "--ws-name"             , type=str  , default='combined'          , help="Name of the workspace")
  parser.add_argument(      "--model-config-name"   , type=str  , default='ModelConfig'       , help="Name of the model configuration")
  parser.add_argument("-d", "--data-name"           , type=str  , default='obsData'           , help="Name of the observed dataset")
  parser.add_argument("-a", "--asimov-name"         , type=str  , default='asimovData_1'      , help="Name of the Asimov dataset (built if not present)")
  parser.add_argument(      "--conditional-snapshot", type=str  , default='conditionalGlobs_1', help="Name of the global observables snapshot for the Asimov dataset")
  parser.add_argument(      "--nominal-snapshot"    , type=str  , default='nominalGlobs'      , help="Name of the nominal global observables snapshot")
  parser.add_argument("-m", "--mass"                , type=float, default=110                 , help="Mass point label, used for output routing")
  parser.add_argument(      "--folder"              , type=str  , default='test'              , help="Output folder label")
  parser.add_argument("-o", "--output-dir"          , type=str  , default='results'           , help="Top-level output directory")
  parser.add_argument("-b", "--blind"               , action='store_true'                     , help="Blind mode: no observed significance, no conditional profiling")
  parser.add_argument(      "--mu-profile"          , type=float, default=1                   , help="POI value at which to profile the observed data when building Asimov datasets")
  parser.add_argument(      "--capped"              , action='store_true'                     , help="Restrict the POI to positive values and floor near-zero significances")
  parser.add_argument(      "--no-obs"              , action='store_true'                     , help="Do not compute the observed significance")
  parser.add_argument(      "--no-median"           , action='store_true'                     , help="Do not compute the median expected significance")
  parser.add_argument(      "--no-inj"              , action='store_true'                     , help="Do not compute the significance for injected signal")
  parser.add_argument(      "--no-conditional"      , action='store_true'                     , help="Build Asimov datasets from nominal instead of conditional nuisance parameter values")
  parser.add_argument(      "--injection-par"       , type=str  , default='ATLAS_norm_muInjection', help="Name of the parameter setting the amount of injected signal")
  parser.add_argument(      "--override-par"        , type=str  , default=None                , help="Nuisance parameter to set before building the Asimov dataset")
  parser.add_argument(      "--override-value"      , type=float, default=None                , help="Value of the override parameter")
  parser.add_argument(      "--override-tag"        , type=str  , default=None                , help="Only apply the override if the tag occurs in the workspace file name")
  parser.add_argument("-s", "--setval"              , type=str  , default=None                , help="Parameter values to set, in the form par1=val1,par2=val2,...")
  parser.add_argument("-k", "--setconst"            , type=str  , default=None                , help="Parameters to hold constant, in the form par1[=val1],par2[=val2],...")
  parser.add_argument("-r", "--setrange"            , type=str  , default=None                , help="Parameter ranges to set, in the form par1:[min1]:[max1],par2:[min2]:[max2],...")
  parser.add_argument(      "--strategy"            , type=int  , default=1                   , help="Initial minimization strategy (0, 1 or 2)")
  parser.add_argument(      "--print-level"         , type=int  , default=1                   , help="Minimizer print level (negative values suppress numerical warnings)")
  parser.add_argument(      "--ncore"               , type=int  , default=int(os.environ.get('NCORE', 1) or 1), help="Number of threads for the likelihood evaluation")
  parser.add_argument(      "--non-strict"          , action='store_true'                     , help="Skip constraint terms with ambiguous nuisance parameters instead of failing")
  parser.add_argument("-p", "--plot"                , action='store_true'                     , help="Save a plot of the results next to the output file")
  parser.add_argument("-t", "--show-timing"         , action='store_true'                     , help="Enables printout of timing information")
  parser.add_argument(      "--markup"              , type=str  , default='json'              , help="Output markup flavor (json or yaml)", choices=[ 'json', 'yaml' ])
  parser.add_argument("-v", "--verbosity"           , type=int  , default=0                   , help="Verbosity level")
  return parser

def run(argv = None) :
  parser = make_parser()
  options = parser.parse_args(argv)
  if not options :
    parser.print_help()
    return

  if options.show_timing : start_time = time.time()

  ws = Workspace.create(options.ws_file, options.ws_name, verbosity=options.verbosity)
  model = Model.create(ws, options.model_config_name)
  print("INFO: using model '%s' from workspace '%s' in file %s." % (options.model_config_name, ws.name, options.ws_file))
  if options.verbosity > 1 : print(ws)

  if options.setrange is not None : process_setranges(options.setrange, ws)
  if options.setval   is not None : process_setvals(options.setval, ws)
  if options.setconst is not None : process_setconsts(options.setconst, ws)

  MinimizerOptions.set_default_strategy(options.strategy)
  MinimizerOptions.set_default_print_level(options.print_level)
  minimizer = RobustMinimizer(verbosity=options.verbosity)

  pipeline = SignificancePipeline(ws, model, data_name=options.data_name, asimov_name=options.asimov_name,
                                  conditional_snapshot=options.conditional_snapshot, nominal_snapshot=options.nominal_snapshot,
                                  do_conditional=not options.no_conditional, do_obs=not options.no_obs,
                                  do_median=not options.no_median, do_inj=not options.no_inj, do_uncap=not options.capped,
                                  blind=options.blind, mu_profile=options.mu_profile, injection_par=options.injection_par,
                                  override_par=options.override_par, override_value=options.override_value,
                                  override_tag=options.override_tag, input_label=options.ws_file, minimizer=minimizer,
                                  num_cpu=options.ncore, strict=not options.non_strict, mass=options.mass,
                                  folder=options.folder, verbosity=options.verbosity)
  result = pipeline.run()
  print(result)

  filename = result.write(options.output_dir, options.markup)
  print("INFO: results written to file '%s'." % filename)
  if options.plot :
    plot_file = os.path.splitext(filename)[0] + '.png'
    result.plot(plot_file)
    print("INFO: result plot saved to file '%s'." % plot_file)

  if options.show_timing :
    stop_time = time.time()
    print('##           Total time: %g s' % (stop_time - start_time))
  return result

if __name__ == '__main__' : run()
