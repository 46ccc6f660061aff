from __future__ import annotations

import pytest

from tvcatalog.models import QualityTier
from tvcatalog.quality import classify, clean_display_name


@pytest.mark.parametrize(
    "name, tier",
    [
        ("Pro TV 4K HD", QualityTier.ULTRA_HD),
        ("Discovery UHD", QualityTier.ULTRA_HD),
        ("Ultra Channel", QualityTier.ULTRA_HD),
        ("Pro TV FHD", QualityTier.FULL_HD),
        ("Digi Sport 1080p HD", QualityTier.FULL_HD),
        ("HBO Full HD", QualityTier.FULL_HD),
        ("Eurosport HD 50 FPS", QualityTier.HD50),
        ("Eurosport HD", QualityTier.HD),
        ("Antena 1 720p", QualityTier.HD),
        ("Antena 1", QualityTier.SD),
        ("Sport 50 fps", QualityTier.SD),
    ],
)
def test_classify_precedence(name: str, tier: QualityTier) -> None:
    assert classify(name).tier is tier


def test_classify_carries_label_and_icon() -> None:
    quality = classify("RO|4K| Pro TV")
    assert quality.label == "4K UHD"
    assert quality.icon


@pytest.mark.parametrize(
    "raw, cleaned",
    [
        ("RO|4K| Pro TV", "Pro TV"),
        ("[RO] Pro TV HD", "Pro TV"),
        ("UK| Sky Sports Main Event FHD", "Sky Sports Main Event"),
        ("Eurosport 1 (backup) HD 50fps", "Eurosport 1"),
        ("RO: Antena   3 CNN", "Antena 3 CNN"),
        ("RO-Pro TV HD", "Pro TV"),
        ("Al-Jazeera HD", "Al-Jazeera"),
    ],
)
def test_clean_display_name(raw: str, cleaned: str) -> None:
    assert clean_display_name(raw) == cleaned


def test_clean_display_name_falls_back_to_raw() -> None:
    assert clean_display_name("[4K]") == "[4K]"
    assert clean_display_name("HD") == "HD"
