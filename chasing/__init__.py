# coding=utf-8
"""
Stimuli for the chasing / purpose perception experiment
--------------------------------------------------------------------------------

Participants watch two discs moving on screen and judge whether one of them
is chasing the other. Four conditions cross two factors:

  - synchrony: how strongly disc 2 is coupled to disc 1 (low / high)
  - directed motion: whether disc 2 actually follows disc 1 (present / absent)

  type 1: low synchrony,  directed motion present
  type 4: high synchrony, directed motion present
  type 5: low synchrony,  directed motion absent
  type 8: high synchrony, directed motion absent

"Absent" trials are produced from the same dynamics as their "present"
counterparts, then disc 2 is played backwards (and its Y axis flipped), so it
moves just as fast but no longer tracks disc 1.

Stimuli are generated in two runs. The first writes raw trajectories; the
speed normalization pass reads them and derives, per synchrony group and
disc, the factors that make mean speeds equal across groups (otherwise
participants could tell synchrony apart just by speed). The second run applies
those factors and renders the final videos and images.
--------------------------------------------------------------------------------
"""

from .config import (SimulationParams, RenderParams, ChasingError, ConfigurationError,
                     IntegrationError, TrajectoryFileError, MY_DIR, DATA_DIR)
from .design import Trial, design_trials, trial_kind, coupling_matrix
from .simulation import Sample, simulate_trial, process_trial
from .speeds import normalize, read_scaling_factors
from .pipeline import run_trials
