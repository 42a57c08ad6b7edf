"""
Shell-style commands usable as pipeline stages.
"""

from .text import cat, cat_filter, echo, echo_filter, wc_l, wc_l_filter
from .sed import (
    compile_replacement, substitute_all, substitute_first,
    substitute_all_filter, substitute_first_filter
)
from .files import (
    copy, copy_file, copy_glob, copy_to_dir, cp_filter,
    ls, ls_d, ls_d_filter, ls_filter, pwd_filter
)
from .process import ExecFilter, ProcessLauncher, exec_filter
from .factory import CommandFactory

__all__ = [
    'cat', 'cat_filter', 'echo', 'echo_filter', 'wc_l', 'wc_l_filter',
    'compile_replacement', 'substitute_all', 'substitute_first',
    'substitute_all_filter', 'substitute_first_filter',
    'copy', 'copy_file', 'copy_glob', 'copy_to_dir', 'cp_filter',
    'ls', 'ls_d', 'ls_d_filter', 'ls_filter', 'pwd_filter',
    'ExecFilter', 'ProcessLauncher', 'exec_filter',
    'CommandFactory',
]
