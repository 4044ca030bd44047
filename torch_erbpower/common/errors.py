"""
Exceptions
==========

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

Errors raised by the ERB power spectrogram while validating its inputs. All of
them derive from :class:`ValueError`, so callers that already guard the
toolbox with ``except ValueError`` keep working.
"""


class InvalidArgumentError(ValueError):
    """A required argument is missing or a scalar parameter is out of range."""


class ShapeError(ValueError):
    """A signal or channel-frequency array is not one-dimensional."""


class DomainError(ValueError):
    r"""
    A channel parameter lies outside the domain where the kernel is defined.

    Raised when a channel's gammatone bandwidth :math:`b_c` does not exceed the
    bandwidth :math:`b_0` of the analysis window, which would make the kernel
    bandwidth :math:`\sqrt{b_c^2 - b_0^2}` non-real, or when a channel centre
    frequency is not strictly positive.
    """
