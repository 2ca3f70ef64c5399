"""Convert BrewBalance data structures to and from JSON friendly dictionaries."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import ActiveChallenge, Challenge, Entry, NoActiveChallenge, Settings


class SnapshotCodec:
    """Serialise settings and entries; decoding merges stored fields over defaults."""

    def settings_to_dict(self, settings: Settings) -> Dict[str, object]:
        active = settings.active_challenge
        return {
            "weekday_budget": str(settings.weekday_budget),
            "weekend_budget": str(settings.weekend_budget),
            "alarm_threshold": str(settings.alarm_threshold),
            "start_date": settings.start_date.isoformat(),
            "end_date": settings.end_date.isoformat() if settings.end_date else None,
            "currency": settings.currency,
            "user_name": settings.user_name,
            "custom_budgets": self._serialise_amounts(settings.custom_budgets),
            "custom_rollovers": self._serialise_amounts(settings.custom_rollovers),
            "active_challenge": self.challenge_to_dict(active) if active is not None else None,
            "past_challenges": [self.challenge_to_dict(challenge) for challenge in settings.past_challenges],
        }

    def settings_from_dict(self, payload: Mapping[str, Any], *, defaults: Optional[Settings] = None) -> Settings:
        base = defaults or Settings()
        active_payload = payload.get("active_challenge")
        slot = (
            ActiveChallenge(self.challenge_from_dict(active_payload))
            if active_payload
            else NoActiveChallenge()
        )
        if "active_challenge" not in payload:
            slot = base.current_challenge
        past = payload.get("past_challenges")
        return Settings(
            weekday_budget=payload.get("weekday_budget", base.weekday_budget),
            weekend_budget=payload.get("weekend_budget", base.weekend_budget),
            alarm_threshold=payload.get("alarm_threshold", base.alarm_threshold),
            start_date=payload.get("start_date") or base.start_date,
            end_date=payload.get("end_date", base.end_date),
            currency=payload.get("currency") or base.currency,
            user_name=payload.get("user_name", base.user_name) or "",
            custom_budgets=payload.get("custom_budgets") or base.custom_budgets,
            custom_rollovers=payload.get("custom_rollovers") or base.custom_rollovers,
            current_challenge=slot,
            past_challenges=(
                tuple(self.challenge_from_dict(item) for item in past)
                if past is not None
                else base.past_challenges
            ),
        )

    def challenge_to_dict(self, challenge: Challenge) -> Dict[str, object]:
        return {
            "id": challenge.id,
            "name": challenge.name,
            "purpose": challenge.purpose,
            "start_date": challenge.start_date.isoformat(),
            "end_date": challenge.end_date.isoformat(),
            "target_percentage": challenge.target_percentage,
            "recurrence": challenge.recurrence.value,
            "recurrence_end_date": (
                challenge.recurrence_end_date.isoformat() if challenge.recurrence_end_date else None
            ),
            "status": challenge.status.value,
            "final_saved": str(challenge.final_saved) if challenge.final_saved is not None else None,
            "final_total_budget": (
                str(challenge.final_total_budget) if challenge.final_total_budget is not None else None
            ),
        }

    def challenge_from_dict(self, payload: Mapping[str, Any]) -> Challenge:
        extra = {"id": payload["id"]} if payload.get("id") else {}
        return Challenge(
            name=payload.get("name", ""),
            purpose=payload.get("purpose") or "",
            start_date=payload["start_date"],
            end_date=payload["end_date"],
            target_percentage=payload.get("target_percentage") or 100,
            recurrence=payload.get("recurrence") or "none",
            recurrence_end_date=payload.get("recurrence_end_date"),
            status=payload.get("status") or "active",
            final_saved=payload.get("final_saved"),
            final_total_budget=payload.get("final_total_budget"),
            **extra,
        )

    def entry_to_dict(self, entry: Entry) -> Dict[str, object]:
        return {
            "id": entry.id,
            "date": entry.date.isoformat(),
            "amount": str(entry.amount),
            "note": entry.note,
            "timestamp": entry.timestamp.isoformat(),
        }

    def entry_from_dict(self, payload: Mapping[str, Any]) -> Entry:
        extra: Dict[str, Any] = {}
        if payload.get("id"):
            extra["id"] = payload["id"]
        if payload.get("timestamp"):
            extra["timestamp"] = datetime.fromisoformat(payload["timestamp"])
        return Entry(date=payload["date"], amount=payload["amount"], note=payload.get("note") or "", **extra)

    def entries_to_list(self, entries: Iterable[Entry]) -> List[Dict[str, object]]:
        return [self.entry_to_dict(entry) for entry in entries]

    def entries_from_list(self, payload: Iterable[Mapping[str, Any]]) -> List[Entry]:
        return [self.entry_from_dict(item) for item in payload]

    def to_json(self, payload: object) -> str:
        return json.dumps(payload, sort_keys=True)

    def from_json(self, raw: str) -> Any:
        return json.loads(raw)

    def _serialise_amounts(self, amounts: Mapping[Any, Any]) -> Dict[str, str]:
        return {day.isoformat(): str(amount) for day, amount in sorted(amounts.items())}


__all__ = ["SnapshotCodec"]
