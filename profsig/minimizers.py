"""Module containing the minimization classes

  * :class:`MinimizerOptions` : process-wide minimization defaults (strategy and print level).

  * :class:`MinimizerService` : a single minimization of an NLL objective at a given strategy level,
    using :mod:`scipy.optimize`. The strategies are

    * 0 : method 'L-BFGS-B' with loose tolerances

    * 1 : method 'L-BFGS-B' with tight tolerances

    * 2 : method 'Powell' (bounded), which does not rely on gradients.

    The minimization returns a status code: 0 for convergence, 1 for convergence with a
    precision warning, 3 if the minimization did not converge (including a gradient minimization
    stuck at its starting point by invalid evaluations), 4 if the call limit was reached,
    and 5 if the objective was not finite at the minimum. The success codes are 0 and 1.

  * :class:`RobustMinimizer` : a wrapper around :class:`MinimizerService` that escalates the
    strategy level on failures.
"""

import math
import warnings
import numpy as np
import scipy.optimize
from contextlib import contextmanager


SUCCESS_CODES = (0, 1)
MAX_STRATEGY = 2


# -------------------------------------------------------------------------
class MinimizerOptions :
  """Process-wide minimization defaults

  Attributes:
     strategy    (int) : default strategy level (0, 1 or 2)
     print_level (int) : default print level; negative values suppress numerical warnings
     max_calls   (int) : maximum number of objective evaluations per minimization
  """

  strategy = 1
  print_level = 1
  max_calls = 20000

  @classmethod
  def set_default_strategy(cls, strategy : int) :
    if strategy < 0 or strategy > MAX_STRATEGY : raise ValueError('Invalid minimization strategy %d, should be between 0 and %d.' % (strategy, MAX_STRATEGY))
    cls.strategy = strategy

  @classmethod
  def set_default_print_level(cls, print_level : int) :
    cls.print_level = print_level


@contextmanager
def message_scope(print_level : int) :
  """Context to suppress numerical warnings for negative print levels

  Both the numpy floating-point error state and the python warning
  filters are restored on exit, including on exceptions.

  Args:
    print_level : the print level; warnings are suppressed if negative
  """
  if print_level >= 0 :
    yield
    return
  with np.errstate(all='ignore'), warnings.catch_warnings() :
    warnings.simplefilter('ignore')
    yield


# -------------------------------------------------------------------------
class MinimizerService :
  """Minimization of an NLL objective using scipy.optimize

  The minimization is performed over the free parameters of the
  objective, within their ranges. After the call, the parameters
  are left at the best-fit point and the minimum value is stored
  in the `min_nll` attribute.

  Attributes:
     min_nll (float) : the minimum NLL value of the last minimization
     ninvalid  (int) : number of non-finite objective values in the last minimization
     result          : the result object of the last scipy.optimize call
     verbosity (int) : output level
  """

  def __init__(self, verbosity : int = 0) :
    self.verbosity = verbosity
    self.min_nll = None
    self.result = None
    self.ninvalid = 0

  def options(self, strategy : int) -> (str, dict) :
    if strategy <= 0 : return 'L-BFGS-B', { 'ftol' : 1E-7, 'gtol' : 1E-4, 'maxfun' : MinimizerOptions.max_calls }
    if strategy == 1 : return 'L-BFGS-B', { 'ftol' : 1E-10, 'gtol' : 1E-6, 'maxfun' : MinimizerOptions.max_calls }
    return 'Powell', { 'xtol' : 1E-6, 'ftol' : 1E-10, 'maxfev' : MinimizerOptions.max_calls }

  def minimize(self, nll : 'NLL', strategy : int = None, print_level : int = None) -> int :
    """Minimize the objective at a given strategy level

      Args:
         nll        : the NLL objective
         strategy   : strategy level (default: :attr:`MinimizerOptions.strategy`)
         print_level: print level (default: :attr:`MinimizerOptions.print_level`)
      Returns:
         the minimization status code
    """
    if strategy is None : strategy = MinimizerOptions.strategy
    if print_level is None : print_level = MinimizerOptions.print_level
    pars = nll.free_parameters()
    ws = nll.ws
    bounds = [ ws.var(par).bounds() for par in pars ]
    x0 = np.array([ ws.var(par).value for par in pars ], dtype=float)
    for i, (lo, hi) in enumerate(bounds) :
      if lo is not None and x0[i] < lo : x0[i] = lo
      if hi is not None and x0[i] > hi : x0[i] = hi
    if len(pars) == 0 :
      self.min_nll = nll.value()
      if print_level > 0 : print('INFO: no free parameters, NLL = %g' % self.min_nll)
      return 0 if math.isfinite(self.min_nll) else 5

    self.ninvalid = 0
    def objective(x) :
      val = nll(x, pars)
      if math.isfinite(val) : return val
      self.ninvalid += 1
      return 1E30

    method, options = self.options(strategy)
    if print_level > 0 : print("INFO: minimizing %d parameters using method '%s' (strategy %d)" % (len(pars), method, strategy))
    self.result = scipy.optimize.minimize(objective, x0=x0, bounds=bounds, method=method, options=options)
    for par, val in zip(pars, np.atleast_1d(self.result.x)) : ws.var(par).assign(val)
    self.min_nll = nll.value()
    status = self.status(self.result, self.min_nll)
    # the flat penalty has no gradient: a gradient method that never left its starting point did not converge
    if status in SUCCESS_CODES and method != 'Powell' and self.ninvalid > 0 and np.allclose(np.atleast_1d(self.result.x), x0) :
      if print_level >= 0 : print('WARNING: minimization stopped at its starting point after %d invalid evaluations.' % self.ninvalid)
      status = 3
    if print_level > 0 :
      print('INFO: minimization status = %d, NLL = %g after %d calls' % (status, self.min_nll, self.result.nfev))
    if print_level > 1 :
      for par in pars : print(ws.var(par).string_repr(pre_indent='  '))
    return status

  @staticmethod
  def status(result, min_nll : float) -> int :
    """Translate a scipy.optimize result into a status code

      Args:
         result  : the scipy.optimize result object
         min_nll : the NLL value at the minimum
      Returns:
         the status code
    """
    if not math.isfinite(min_nll) or min_nll >= 1E30 : return 5
    message = str(getattr(result, 'message', ''))
    if result.success : return 1 if 'precision' in message.lower() else 0
    if 'LIMIT' in message.upper() or 'MAXIMUM NUMBER' in message.upper() : return 4
    return 3


# -------------------------------------------------------------------------
class RobustMinimizer :
  """Minimization with escalating strategy on failures

  The minimization is first performed at the configured strategy
  level. While the status is not a success code and the strategy is
  below 2, the strategy is incremented and the minimization repeated,
  for at most 3 attempts in total. A final failure is reported but
  not raised: the parameters are left at the last minimum reached,
  and the caller decides how to proceed.

  If `const_test` is set, the parameters listed in `const_pars` are
  held constant for the duration of each call, and their previous
  constancy restored afterwards.

  Attributes:
     service     (MinimizerService) : the underlying minimizer
     strategy    (int)  : initial strategy level (None: the default in MinimizerOptions when minimizing)
     print_level (int)  : print level, negative values suppress numerical warnings (None: the default when minimizing)
     const_pars  (list) : parameters held constant if `const_test` is set
     const_test  (bool) : whether to hold `const_pars` constant
     verbosity   (int)  : output level
  """

  def __init__(self, service : MinimizerService = None, strategy : int = None, print_level : int = None,
               const_pars : list = None, const_test : bool = False, verbosity : int = 0) :
    self.service = service if service is not None else MinimizerService(verbosity)
    self.strategy = strategy
    self.print_level = print_level
    self.const_pars = list(const_pars) if const_pars is not None else []
    self.const_test = const_test
    self.verbosity = verbosity
    self.ncalls = 0
    self.min_nll = None

  def minimize(self, nll : 'NLL', ws : 'Workspace' = None) -> int :
    """Minimize an objective, escalating the strategy on failures

      Args:
         nll : the NLL objective
         ws  : the workspace holding the parameters (default: that of the objective)
      Returns:
         the status of the last minimization
    """
    if ws is None : ws = nll.ws
    saved_constancy = {}
    if self.const_test :
      for par in self.const_pars :
        var = ws.var(par)
        if var is None :
          print("WARNING: parameter '%s' not found, cannot hold it constant." % par)
          continue
        saved_constancy[par] = var.constant
        var.set_constant(True)
    try :
      print_level = self.print_level if self.print_level is not None else MinimizerOptions.print_level
      with message_scope(print_level) :
        strategy = self.strategy if self.strategy is not None else MinimizerOptions.strategy
        status = self.service.minimize(nll, strategy, print_level)
        self.ncalls = 1
        while status not in SUCCESS_CODES and strategy < MAX_STRATEGY :
          strategy += 1
          print('WARNING: minimization failed with status %d, retrying with strategy %d.' % (status, strategy))
          status = self.service.minimize(nll, strategy, print_level)
          self.ncalls += 1
        if status not in SUCCESS_CODES :
          print('WARNING: minimization still failing with status %d after %d attempts.' % (status, self.ncalls))
        self.min_nll = self.service.min_nll
    finally :
      for par, constant in saved_constancy.items() : ws.var(par).set_constant(constant)
    return status
