from typing import TypeAlias, NamedTuple, Literal

Path: TypeAlias = str  # a path inside a tree
OID: TypeAlias = str  # hash
RefName: TypeAlias = str  # e.g. refs/heads/main
TreeMap: TypeAlias = dict[Path, OID]
ObjectType: TypeAlias = Literal['value', 'tree', 'commit']

# Reasons a push is refused to protect the remote history
StatusCode: TypeAlias = Literal[
    'REMOTE_HAS_CHANGES',
    'HISTORY_TOO_SHALLOW',
    'CANNOT_PUSH_TO_SYMBOLIC_REF',
]

RefState: TypeAlias = Literal['up_to_date', 'done', 'failed']


class Commit(NamedTuple):
    tree: OID
    parents: list[OID]
    author: str
    timestamp: int
    message: str


class RefValue(NamedTuple):
    symbolic: bool
    value: OID | RefName | None


class RefSpec(NamedTuple):
    source: RefName
    destination: RefName

    def __str__(self):
        return f'{self.source}:{self.destination}'


class UpToDate(NamedTuple):
    refspec: RefSpec
    oid: OID


class FastForward(NamedTuple):
    refspec: RefSpec
    old: OID | None  # None when the remote ref is being created
    new: OID
    missing: list[OID]  # dependency order


class Rejected(NamedTuple):
    refspec: RefSpec
    code: StatusCode
    detail: str


Negotiation: TypeAlias = UpToDate | FastForward | Rejected


class RefUpdate(NamedTuple):
    refspec: RefSpec
    state: RefState
    old: OID | None
    new: OID | None
    objects_sent: int = 0
    rejection: Rejected | None = None


class PushResult(NamedTuple):
    remote: str
    updates: list[RefUpdate]
    rejection: Rejected | None = None

    @property
    def data_pushed(self) -> bool:
        return any(update.objects_sent or update.state == 'done'
                   for update in self.updates)

    @property
    def ok(self) -> bool:
        return self.rejection is None
