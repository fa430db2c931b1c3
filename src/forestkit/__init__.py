"""forestkit: Parallel inference for ensembles of binary decision trees."""

from loguru import logger

from forestkit.accumulators import Accumulator, ArgMaxAcc, ArgMaxVectorAcc, MeanDistributionAcc
from forestkit.forest import UNSET_LEAF_ID, ForestModel
from forestkit.graph import ForestGraph
from forestkit.logging import PACKAGE_NAME, enable_logging
from forestkit.node_map import NodeMap
from forestkit.problem_spec import ProblemSpec
from forestkit.sklearn_import import forest_from_sklearn
from forestkit.split_tests import Float32LessEqualSplitTest, LessEqualSplitTest, SplitTest, ThresholdSplitTest

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the forestkit package by default

__all__ = [
    "UNSET_LEAF_ID",
    "Accumulator",
    "ArgMaxAcc",
    "ArgMaxVectorAcc",
    "Float32LessEqualSplitTest",
    "ForestGraph",
    "ForestModel",
    "LessEqualSplitTest",
    "MeanDistributionAcc",
    "NodeMap",
    "ProblemSpec",
    "SplitTest",
    "ThresholdSplitTest",
    "enable_logging",
    "forest_from_sklearn",
]
