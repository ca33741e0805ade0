import inspect
import threading


class EvaluationError(Exception):
    """Raised when evaluating an observation fails."""


class UnsupportedContainerError(TypeError):
    """Raised when a container lacks observation count or access support."""


class DimensionMismatchError(ValueError):
    """Raised when grouped containers disagree on their observation count."""


class EmptyContainerError(ValueError):
    """Raised when requesting an observation from an empty container."""


# Settings --------------------------------------------------------------------

def seterr(evaluation=None):
    """Set how errors are handled.

    Args:
        evaluation (str): how errors from user code triggered by ObsTools are
            propagated:

            - `'wrap'`: raise :class:`EvaluationError` with original error as
              its cause.
            - `'passthrough'`: let the error propagate through ObsTools code,
              might facilitate step-by-step debugging.
            - `None` leave unchanged and return current setting
    Returns:
        The setting value.
    """
    if evaluation == 'wrap':
        error_config.passthrough = False
    elif evaluation == 'passthrough':
        error_config.passthrough = True
    elif evaluation is not None:
        raise ValueError("evaluation must be 'wrap' or 'passthrough'")

    return "passthrough" if error_config.passthrough else 'wrap'


class ErrorConfig(threading.local):
    def __init__(self):
        super().__init__()
        self.passthrough = False


error_config = ErrorConfig()


def wrap_evaluation_error(cause, what, item, stack=None):
    """Re-raise `cause` according to the error setting.

    Args:
        cause (Exception): the error raised by user code.
        what (str): a description of the object being evaluated.
        item: the observation or batch index that failed.
        stack (Optional[str]): formatted stack of the object creation site.
    """
    if seterr() == 'passthrough' or isinstance(cause, EvaluationError):
        raise cause

    msg = "failed to evaluate item {} in {}".format(item, what)
    if stack:
        msg += " created at:\n{}".format(stack)
    raise EvaluationError(msg) from cause


# Helpers ---------------------------------------------------------------------

def unindent(lines):
    if not lines:
        return []

    prefix = lines[0]
    while len(prefix) > 0 and not prefix.isspace():
        prefix = prefix[:-1]

    for line in lines[1:]:
        while not line.startswith(prefix):
            prefix = prefix[:-1]

    return [line[len(prefix):] for line in lines]


def format_stack(skip=1):
    out = ""
    for frame in inspect.stack()[:skip:-1]:
        _, filename, lineno, function, code_context, _ = frame
        out += "  File \"{}\", line {}, in {}\n".format(
            filename, lineno, function)
        for line in unindent(code_context):
            out += "    " + line

    return out
