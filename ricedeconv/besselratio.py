import numpy as np
from scipy.special import i0e, i1e


def approx_i1_i0(r):
    """
    Rational approximation of the Bessel ratio I1(r)/I0(r) that appears in the
    derivative of the Rician log-likelihood, accurate to about 1e-3 for r >= 0.
    The reference kernel wrote the denominator as a quartic with 2.57541 repeated,
    which tends to 0 rather than 1; the published cubic form is used here.
    Vectorized for numpy arrays.
    """

    r = np.asarray(r, dtype=np.float64)
    numer = r * (2.38944 + r * (0.950037 + r))
    denom = 4.65314 + r * (2.57541 + r * (1.48937 + r))
    return numer / denom


def bessel_i1_i0(z):
    """
    Exact ratio I1(z)/I0(z) using exponentially scaled Bessel functions,
    which stay finite for large z where scipy.special.iv overflows.
    """

    z = np.asarray(z, dtype=np.float64)
    return i1e(z) / i0e(z)
