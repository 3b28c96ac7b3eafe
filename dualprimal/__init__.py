__copyright__ = "Copyright (C) 2024 dualprimal contributors"

__license__ = """
Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in
all copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN
THE SOFTWARE.
"""


__doc__ = """
.. exception:: Error
.. exception:: NotInitializedError
.. exception:: AlreadyCompletedError
.. exception:: AlreadyInitializedError
.. exception:: ShapeMismatchError
.. exception:: DimensionOutOfRangeError
.. exception:: InternalConsistencyError
"""


class Error(RuntimeError):
    pass


class NotInitializedError(Error):
    """Raised when a phase or accessor is used before the data it depends
    on has been set up.
    """


class AlreadyCompletedError(Error):
    """Raised when a setup phase is invoked a second time on the same
    instance.
    """


class AlreadyInitializedError(AlreadyCompletedError):
    pass


class ShapeMismatchError(Error, ValueError):
    pass


class DimensionOutOfRangeError(Error, ValueError):
    pass


class InternalConsistencyError(Error):
    """Raised when the supplied dof maps violate an invariant that the
    engine relies on, e.g. a coupled dof without a partner.
    """
