from .gaussian import gaussian_blur, recursive_coefficients, GAUSSIAN_NUMSTEPS
from .deconv import (rician_deconv3, deconvolve_array, DeconvConfig,
                     diffusivity, rician_residual, semi_implicit_update,
                     MAX_ITERATIONS, DT, EPSILON)
from .besselratio import approx_i1_i0, bessel_i1_i0
from .ricedeconv import RicianDeconv
from .utils import check_volumes, face_neighbors, line_neighbors, signal_mask_otsu, airspace_noise_est, residual_maps
