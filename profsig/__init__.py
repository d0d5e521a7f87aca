from .base         import Serializable, RealVar, Category
from .nodes        import Node, LinearCombination, ProductRatio, Exponential, Pdf, Gaussian, LogNormal, Gamma, Poisson, BifurGauss, Uniform, BinnedPdf, ProdPdf, SimultaneousPdf, ELEMENTARY_KINDS
from .data         import Dataset
from .nll          import NLL
from .model        import ModelConfig, Model
from .workspace    import Workspace
from .minimizers   import MinimizerOptions, MinimizerService, RobustMinimizer, message_scope
from .constraints  import ConstraintUnfolder
from .asimov       import AsimovSynthesizer
from .results      import SignificanceResult
from .significance import SignificancePipeline, significance_from_q0, pvalue_from_significance
from .builders     import make_counting_workspace

import numpy as np
np.set_printoptions(linewidth=200, precision=4, suppress=True, floatmode='maxprec')
