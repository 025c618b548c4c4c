
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, NamedTuple, Optional


# Исходы обработки события
IMMEDIATE = 'immediate'
DEFERRED = 'deferred'
IGNORED = 'ignored'

OUTCOMES = (IMMEDIATE, DEFERRED, IGNORED)

# Причины для IGNORED
KEY_LIMIT_REACHED = 'key_limit_reached'
ALREADY_DEFERRED = 'already_deferred'


@dataclass
class EventRecord:
    """
    Сохраняемое состояние одного потока событий, одна запись на составной ключ.

    `config` это снимок политики на момент создания записи;
    `strategy_data` принадлежит стратегии, создавшей запись.
    """
    key: str
    category: str
    identifier: str
    details: Any
    details_fingerprint: str
    count: int
    last_event_time: float
    expires_at: float
    deferred: bool = False
    scheduled_send_at: Optional[float] = None
    config: Dict[str, Any] = field(default_factory=dict)
    strategy_data: Optional[Dict[str, Any]] = None

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventRecord':
        scheduled = data.get('scheduled_send_at')
        return cls(
            key=data['key'],
            category=data['category'],
            identifier=data['identifier'],
            details=data.get('details'),
            details_fingerprint=data.get('details_fingerprint', ''),
            count=int(data['count']),
            last_event_time=float(data['last_event_time']),
            expires_at=float(data['expires_at']),
            deferred=bool(data.get('deferred', False)),
            scheduled_send_at=float(scheduled) if scheduled is not None else None,
            config=dict(data.get('config') or {}),
            strategy_data=data.get('strategy_data'),
        )


@dataclass(frozen=True)
class Occurrence:
    """Одно наступление события, уже с ключом, отпечатком и временем."""
    key: str
    category: str
    identifier: str
    details: Any
    fingerprint: str
    timestamp: float


@dataclass(frozen=True)
class Policy:
    """Параметры трекера, из которых стратегия делает снимок config."""
    limit: int
    defer_interval: float
    expire_time: float


class Decision(NamedTuple):
    outcome: str
    record: EventRecord
    reason: Optional[str] = None


class TrackResult(NamedTuple):
    type: str
    record: Optional[EventRecord]
    reason: Optional[str] = None
