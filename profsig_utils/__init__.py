"""
Common functions for profsig_utils scripts

"""

import re
from profsig import Workspace


def matching_vars(ws : Workspace, pattern : str) -> list :
  matches = [ name for name in ws.nodes if ws.var(name) is not None and re.fullmatch(pattern, name) ]
  if len(matches) == 0 : raise ValueError("No parameters matching '%s' defined in workspace '%s'." % (pattern, ws.name))
  return matches


def process_setvals(setvals : str, ws : Workspace) -> dict :
  """Parse and apply a set of parameter value assignments

  The input string is expected in the form

  par1=val1,par2=val2,...

  where the `parX` may be regular expressions matching several
  parameter names. The values are applied to the matching
  workspace parameters (clipped to their ranges).

  Exception are raised if no parameter matches a `parX`,
  or if the `valX` are not float values.

  Args:
    setvals : a string specifying parameter assignements
    ws      : workspace containing the parameters

  Returns:
    the applied assignments, as a dict in the form { par_name : par_value }
  """
  par_dict = {}
  try:
    sets = [ a.replace(' ', '').split('=') for a in setvals.split(',') ]
    for (var, val) in sets : float(val)
  except Exception as inst :
    print(inst)
    raise ValueError("ERROR : invalid variable assignment specification '%s'." % setvals)
  for (var, val) in sets :
    for name in matching_vars(ws, var) :
      ws.var(name).set_value(float(val))
      par_dict[name] = ws.var(name).value
  return par_dict


def process_setconsts(setconsts : str, ws : Workspace, constant : bool = True) -> list :
  """Parse and apply a list of parameters to hold constant

  The input string is expected in the form

  par1,par2=val2,...

  If a value is specified, the parameter is also set to this value.

  Args:
    setconsts : a string specifying the parameters
    ws        : workspace containing the parameters
    constant  : the constancy to apply

  Returns:
    the names of the affected parameters
  """
  names = []
  for spec in setconsts.replace(' ', '').split(',') :
    fields = spec.split('=')
    if len(fields) > 2 : raise ValueError("Invalid constant parameter specification '%s'." % spec)
    for name in matching_vars(ws, fields[0]) :
      if len(fields) == 2 :
        try :
          ws.var(name).set_value(float(fields[1]))
        except ValueError as inst :
          print(inst)
          raise ValueError("Invalid numerical value '%s' in assignment to parameter '%s'." % (fields[1], name))
      ws.var(name).set_constant(constant)
      names.append(name)
  return names


def process_setranges(setranges : str, ws : Workspace) -> dict :
  """Parse and apply a set of parameter range assignments

  The input string is expected in the form

  par1:[min1]:[max1],par2:[min2]:[max2],...

  where either the `minX` or the `maxX` values can be omitted (but not the ':' separator!)
  to indicate open ranges.

  Args:
    setranges : a string specifying the parameter ranges
    ws        : workspace containing the parameters

  Returns:
    the applied ranges, as a dict in the form { par_name : (min, max) }
  """
  ranges = {}
  try:
    sets = [ v.replace(' ', '').split(':') for v in setranges.split(',') ]
    sets = [ (var, float(minval) if minval != '' else None, float(maxval) if maxval != '' else None) for (var, minval, maxval) in sets ]
  except Exception as inst :
    print(inst)
    raise ValueError("ERROR : invalid range specification '%s', expected in the form var1:[min1]:[max1],var2:[min2]:[max2],..." % setranges)
  for (var, minval, maxval) in sets :
    for name in matching_vars(ws, var) :
      ws.var(name).set_range(minval, maxval)
      ranges[name] = (minval, maxval)
  return ranges
