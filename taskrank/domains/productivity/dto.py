"""Outward views over player data.

The ranking entry is what every player sees about every other player, so it
carries XP and level but never percentages or the productivity breakdown.
The profile view adds those, and is only served for a player's own profile.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import DeliveryDistribution, LevelProgress, Player, ProductivitySummary


class _DTO(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        serialize_by_alias=True,
    )


class RankingEntryDTO(_DTO):
    id: str
    name: str
    avatar: str
    xp: int = Field(ge=0)
    level: int = Field(ge=1)
    weekly_xp: int = Field(ge=0)
    monthly_xp: int = Field(ge=0)
    missions_completed: int = Field(ge=0)
    consistency_bonus: int = Field(ge=0)
    streak: int = Field(ge=0)


class ProfileProductivityDTO(_DTO):
    total_considered: int = Field(ge=0)
    average_percent: int = Field(ge=0, le=100)


class DeliveryDistributionDTO(_DTO):
    # Keys are classification names, not camelCase
    model_config = ConfigDict(alias_generator=None)

    early: int = Field(ge=0)
    on_time: int = Field(ge=0)
    late: int = Field(ge=0)
    refacao: int = Field(ge=0)


class LevelProgressDTO(_DTO):
    current_level: int
    xp_into_level: int
    xp_for_next_level: int
    progress_percentage: float


class PlayerProfileDTO(_DTO):
    id: str
    name: str
    avatar: str
    level: int = Field(ge=1)
    missions_completed: int = Field(ge=0)
    streak: int = Field(ge=0)
    productivity: ProfileProductivityDTO
    delivery_distribution: DeliveryDistributionDTO
    level_progress: LevelProgressDTO | None = None


def to_ranking_entry(
    player: Player,
    xp: int,
    level: int,
    weekly_xp: int,
    monthly_xp: int,
    consistency_bonus: int,
) -> RankingEntryDTO:
    return RankingEntryDTO(
        id=player.id,
        name=player.name,
        avatar=player.avatar,
        xp=xp,
        level=level,
        weekly_xp=weekly_xp,
        monthly_xp=monthly_xp,
        missions_completed=player.missions_completed,
        consistency_bonus=consistency_bonus,
        streak=player.streak,
    )


def to_player_profile(
    player: Player,
    summary: ProductivitySummary,
    distribution: DeliveryDistribution,
    level: int,
    progress: LevelProgress | None = None,
) -> PlayerProfileDTO:
    return PlayerProfileDTO(
        id=player.id,
        name=player.name,
        avatar=player.avatar,
        level=level,
        missions_completed=player.missions_completed,
        streak=player.streak,
        productivity=ProfileProductivityDTO(
            total_considered=summary.total_considered,
            average_percent=summary.average_percent_rounded,
        ),
        delivery_distribution=DeliveryDistributionDTO(**distribution.model_dump()),
        level_progress=LevelProgressDTO(**progress.model_dump()) if progress else None,
    )
