from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from deckrift.models import (
    Equipment, EquipmentKind, HitEffect, Condition, EnemyTemplate,
    RangeCondition, SuitCondition, ColorCondition, RankCondition,
)


@dataclass(frozen=True)
class Catalog:
    weapons: dict[str, Equipment] = field(default_factory=dict)
    armor: dict[str, Equipment] = field(default_factory=dict)
    enemies: dict[str, EnemyTemplate] = field(default_factory=dict)
    realms: dict[int, tuple[int, ...]] = field(default_factory=dict)

    def equipment(self, equipment_id: Optional[str]) -> Optional[Equipment]:
        if equipment_id is None:
            return None
        return self.weapons.get(equipment_id) or self.armor.get(equipment_id)

    def starting_equipment(self) -> list[str]:
        return [eq.id for eq in (*self.weapons.values(), *self.armor.values()) if eq.starting]


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _parse_condition(obj: dict, path: str) -> Condition:
    kind = obj.get("type")
    if kind == "range":
        return RangeCondition(min=int(obj["from"]), max=int(obj["to"]))
    if kind == "suit":
        return SuitCondition(suit=obj["value"])
    if kind == "color":
        return ColorCondition(color=obj["value"])
    if kind == "card":
        return RankCondition(rank=str(obj["value"]))
    raise ValueError(f"{path}: unknown condition type '{kind}'")


def _parse_hit_effect(obj: dict, path: str) -> HitEffect:
    return HitEffect(
        condition=_parse_condition(obj["condition"], f"{path}.condition"),
        effect=obj["effect"],
    )


def _parse_equipment(equipment_id: str, obj: dict, kind: EquipmentKind, path: str) -> Equipment:
    effects = obj.get("hitEffects", [])
    return Equipment(
        id=equipment_id,
        name=obj.get("name", equipment_id),
        kind=kind,
        hit_effects=tuple(_parse_hit_effect(e, f"{path}.hitEffects[{i}]") for i, e in enumerate(effects)),
        description=obj.get("description", ""),
        starting=bool(obj.get("starting", False)),
        run_exclusive=bool(obj.get("runExclusive", False)),
    )


def load_equipment(path: Path) -> tuple[dict[str, Equipment], dict[str, Equipment]]:
    raw = _read_json(path)
    weapons: dict[str, Equipment] = {}
    armor: dict[str, Equipment] = {}
    errs: list[str] = []

    for section, kind, target in (("weapons", "weapon", weapons), ("armor", "armor", armor)):
        for equipment_id, obj in (raw.get(section) or {}).items():
            where = f"Equipment({path.name}).{section}.{equipment_id}"
            eq = _parse_equipment(equipment_id, obj, kind, where)
            errs += eq.validate(where)
            target[equipment_id] = eq

    overlap = set(weapons) & set(armor)
    if overlap:
        errs.append(f"Equipment({path.name}): ids used for both weapon and armor: {sorted(overlap)}")
    if errs:
        raise ValueError("Equipment validation failed:\n- " + "\n- ".join(errs))
    if not weapons:
        raise ValueError(f"No weapons found in {path}")
    return weapons, armor


def load_enemies(path: Path, weapons: dict[str, Equipment]) -> dict[str, EnemyTemplate]:
    enemies: dict[str, EnemyTemplate] = {}
    available_weapons = set(weapons.keys())

    for raw in _read_json(path):
        enemy = EnemyTemplate(
            id=raw["id"],
            name=raw.get("name", raw["id"]),
            primary_stat=raw.get("primaryStat"),
            weapon=raw.get("weapon", "sword"),
            health=int(raw.get("health", 30)),
            boss=bool(raw.get("boss", False)),
        )

        errs = enemy.validate(f"Enemy({enemy.id})", available_weapons=available_weapons)
        if errs:
            raise ValueError("Enemy validation failed:\n- " + "\n- ".join(errs))

        if enemy.id in enemies:
            raise ValueError(f"Duplicate enemy id '{enemy.id}' (file {path.name})")
        enemies[enemy.id] = enemy

    if not enemies:
        raise ValueError(f"No enemies found in {path}")
    return enemies


def load_realms(path: Path) -> dict[int, tuple[int, ...]]:
    """Challenge modifiers per realm, one entry per 1-based level."""
    raw = _read_json(path)
    realms: dict[int, tuple[int, ...]] = {}
    for realm_id, modifiers in raw.items():
        mods = tuple(int(m) for m in modifiers)
        if not mods or any(m < 0 for m in mods):
            raise ValueError(f"Realm({realm_id}): modifiers must be a non-empty list of ints >= 0")
        realms[int(realm_id)] = mods
    return realms


def load_catalog(data_dir: Path) -> Catalog:
    weapons, armor = load_equipment(data_dir / "equipment.json")
    return Catalog(
        weapons=weapons,
        armor=armor,
        enemies=load_enemies(data_dir / "enemies.json", weapons=weapons),
        realms=load_realms(data_dir / "realms.json"),
    )
