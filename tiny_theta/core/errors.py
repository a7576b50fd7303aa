"""
Exceptions raised by tiny-theta.

Argument problems are reported with the builtin ValueError/TypeError; this
module only holds the errors that have no builtin counterpart.
"""


class InvalidStateError(RuntimeError):
    """Raised when an operation is not legal in the object's current state.

    The main case is asking an intersection for its result before it has
    seen any input: a fresh intersection represents the universal set,
    which cannot be materialized as a sketch.
    """
