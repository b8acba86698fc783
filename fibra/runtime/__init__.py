"""
fibra — a resumable computation that advances one step per invocation.

Every identity owns exactly one record, stored at an address derived from a
fixed seed and the identity's public key. The first call allocates and
initialises the record; every later call loads it, advances it by one step,
writes it back and, while work remains, re-invokes the same program one level
deeper. The host caps the invoke stack height, so a single transaction can
only reach a bounded number of steps, and any failure rolls the whole
transaction back.

| Layer                      | Purpose                                  |
<--------------------------- + ---------------------------------------- >
| **Address derivation**     | Seed + identity → off-curve address      |
| **State codec**            | 25-byte little-endian record             |
| **Allocation protocol**    | Rent-exempt create-account request       |
| **Step engine**            | Pure checked recurrence step             |
| **Resume dispatcher**      | Init vs. resume, self-invocation         |
| **Execution host**         | Accounts, invoke stack, rollback         |
| **Snapshots & logbook**    | Persistence and signed provenance        |
"""

from . import core as _core
from . import errors as _errors
from . import derivation as _derivation
from . import codec as _codec
from . import engine as _engine
from . import allocation as _allocation
from . import privileges as _privileges
from . import crypto as _crypto
from . import host as _host
from . import program as _program
from . import snapshot as _snapshot
from . import trace as _trace
from .cli import build_runtime, main, parse_args
from ..constants import KEY_FILE, LOGBOOK_FILE, OPERATOR_KEY_FILE, STORE_FILE

from .core import *
from .errors import *
from .derivation import *
from .codec import *
from .engine import *
from .allocation import *
from .privileges import *
from .crypto import *
from .host import *
from .program import *
from .snapshot import *
from .trace import *

__all__ = []
for module in (
    _core,
    _errors,
    _derivation,
    _codec,
    _engine,
    _allocation,
    _privileges,
    _crypto,
    _host,
    _program,
    _snapshot,
    _trace,
):
    __all__.extend(getattr(module, '__all__', []))
__all__ += ['build_runtime', 'main', 'parse_args', 'KEY_FILE', 'LOGBOOK_FILE', 'OPERATOR_KEY_FILE', 'STORE_FILE']
__all__ = list(dict.fromkeys(__all__))
