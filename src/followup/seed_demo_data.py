"""
seed_demo_data.py
─────────────────
Populate the record store with a demo counselor workspace: two clients,
a template using every block variant, two follow-ups and small product /
program catalogs (plus card-draw spreads and decks), so the Streamlit app
and the terminal demo have something to preview and export on first run.

Safe to re-run: every document is written with a fixed id (set, not add),
so existing demo records are refreshed.
    python -m followup.seed_demo_data
"""

from __future__ import annotations

import logging

from followup.card_draw import Spread
from followup.config import get_settings
from followup.database import RecordStore
from followup.models import Card, SpreadPosition
from followup.repository import (
    PRODUCTS_COLLECTION,
    PROGRAMS_COLLECTION,
    clients_path,
    followups_path,
    templates_path,
)

logger = logging.getLogger(__name__)

DEMO_TEMPLATE_ID = "tpl-wellbeing"
DEMO_FOLLOWUP_ID = "fu-alice-wellbeing"


# ─────────────────────────────────────────────────────────────────────────────
# Template: one block of each variant, plus one block type this version no
# longer knows (shown as a raw dump)
# ─────────────────────────────────────────────────────────────────────────────

def _answer(aid: str, text: str, value: str) -> dict:
    return {"id": aid, "text": text, "value": value}


def demo_template() -> dict:
    return {
        "name": "Wellbeing check-in",
        "blocks": [
            {
                "id": "b-energy", "type": "scale", "title": "How do you feel this week?",
                "subQuestions": [
                    {"id": "q-energy", "text": "Energy"},
                    {"id": "q-sleep", "text": "Sleep"},
                    {"id": "q-stress", "text": "Stress"},
                ],
            },
            {
                "id": "b-pain", "type": "scale", "title": "Back pain",
                "subQuestions": [{"id": "q-pain", "text": "Pain level"}],
            },
            {"id": "b-goal", "type": "free-text", "question": "What would you like to change first?"},
            {"id": "b-report", "type": "report", "title": "Session notes"},
            {
                "id": "b-element", "type": "scorm", "title": "Dominant element",
                "questions": [
                    {"id": "e1", "text": "In a conflict you tend to…", "answers": [
                        _answer("e1a", "Stay calm and wait", "water"),
                        _answer("e1b", "Speak up immediately", "fire"),
                    ]},
                    {"id": "e2", "text": "Your ideal weekend…", "answers": [
                        _answer("e2a", "A lake and a book", "water"),
                        _answer("e2b", "A festival", "fire"),
                    ]},
                    {"id": "e3", "text": "You recharge by…", "answers": [
                        _answer("e3a", "Sleeping in", "water"),
                        _answer("e3b", "Sport", "fire"),
                    ]},
                ],
                "results": [
                    {"value": "water", "text": "Water: adaptable, calm and intuitive."},
                    {"value": "fire", "text": "Fire: driven, warm and quick to act."},
                ],
            },
            {
                "id": "b-habits", "type": "qcm", "title": "Habits",
                "questions": [
                    {"id": "h1", "text": "How much water do you drink daily?", "answers": [
                        {"id": "h1a", "text": "Less than 1 L",
                         "resultText": "Aim for 1.5 L spread over the day."},
                        {"id": "h1b", "text": "1.5 L or more"},
                    ]},
                ],
            },
            {"id": "b-cards", "type": "prisme", "title": "Card draw"},
            {"id": "b-profile", "type": "vitae", "title": "Profile analysis"},
            {"id": "b-match", "type": "aura", "title": "Recommendations"},
            {"id": "b-legacy", "type": "legacy_quiz", "title": "Legacy quiz"},
        ],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Follow-up answers (stored in the older list layout on purpose)
# ─────────────────────────────────────────────────────────────────────────────

def demo_followup() -> dict:
    return {
        "clientId": "cl-alice",
        "clientName": "Alice Martin",
        "templateId": DEMO_TEMPLATE_ID,
        "templateName": "Wellbeing check-in",
        "createdAt": "2026-10-01T09:30:00+00:00",
        "status": "pending",
        "answers": [
            {"questionId": "b-energy", "answer": {"q-energy": 4, "q-sleep": 7, "q-stress": 2}},
            {"questionId": "b-pain", "answer": {"q-pain": "3"}},
            {"questionId": "b-goal", "answer": "Sleep before midnight at least four nights a week."},
            {"questionId": "b-report", "answer": {
                "text": "Alice reports better sleep since the last session. Stress peaks "
                        "on Mondays. We agreed on a short breathing routine before work.",
                "partners": [
                    {"id": "p1", "name": "Dr. Claire Dubois", "email": "claire@example.org",
                     "specialties": ["Osteopathy", "Sports injuries"]},
                    {"id": "p2", "name": "Marc Leroy", "phone": "+33 6 00 00 00 00",
                     "specialties": ["Nutrition"]},
                ],
            }},
            {"questionId": "b-element", "answer": {"e1": "e1a", "e2": "e2b", "e3": "e3a"}},
            {"questionId": "b-habits", "answer": {"h1": "h1a"}},
            {"questionId": "b-cards", "answer": {
                "tirageModelId": "three-card", "deckId": "deck-nature",
                "drawnCards": [
                    {"position": {"positionNumber": 2, "meaning": "Present"},
                     "card": {"id": "c-oak", "name": "The Oak", "description": "Strength"}},
                    {"position": {"positionNumber": 1, "meaning": "Past"},
                     "card": {"id": "c-river", "name": "The River"}},
                    {"position": {"positionNumber": 3, "meaning": "Future"},
                     "card": {"id": "c-dawn", "name": "Dawn"}},
                ],
            }},
            {"questionId": "b-profile", "answer": {
                "score": 67,
                "matching": ["Soft skills: listening, patience"],
                "missing": ["Training level: certificate"],
            }},
            {"questionId": "b-legacy", "answer": {"q1": "yes", "q2": "no"}},
        ],
    }


def demo_clients() -> dict[str, dict]:
    return {
        "cl-alice": {"name": "Alice Martin", "contraindications": ["pregnancy"],
                     "allergies": ["lavender"]},
        "cl-bruno": {"firstName": "Bruno", "lastName": "Petit", "contraindications": [],
                     "allergies": []},
    }


def demo_products() -> dict[str, dict]:
    return {
        "prd-lavender": {"title": "Lavender essential oil", "tags": ["calm", "sleep"],
                         "contraindications": ["lavender"]},
        "prd-chamomile": {"title": "Chamomile tea", "tags": ["sleep", "anxiety"],
                          "holisticProfile": ["water"]},
        "prd-ginseng": {"title": "Ginseng capsules", "tags": ["fatigue"],
                        "contraindications": ["pregnancy"]},
        "prd-magnesium": {"title": "Magnesium complex", "tags": ["fatigue", "stress"],
                          "holisticProfile": ["fire"]},
    }


def demo_programs() -> dict[str, dict]:
    return {
        "prg-breath": {"name": "Breathing protocol, 21 days", "pathologies": ["stress", "anxiety"],
                       "holisticProfile": ["water"]},
        "prg-sleep": {"name": "Sleep hygiene programme", "pathologies": ["sleep"]},
    }


# ─────────────────────────────────────────────────────────────────────────────
# Card-draw models and decks (offered by the Card draw action; not stored)
# ─────────────────────────────────────────────────────────────────────────────

def demo_spreads() -> dict[str, Spread]:
    return {
        "three-card": Spread("three-card", "Past / Present / Future", [
            SpreadPosition(1, "Past"), SpreadPosition(2, "Present"), SpreadPosition(3, "Future"),
        ]),
        "single": Spread("single", "Card of the day", [SpreadPosition(1, "Today")]),
    }


def demo_decks() -> dict[str, list[Card]]:
    return {
        "deck-nature": [
            Card("c-oak", "The Oak", "Strength"),
            Card("c-river", "The River", "Letting go"),
            Card("c-dawn", "Dawn", "New beginnings"),
            Card("c-stone", "The Stone", "Patience"),
            Card("c-wind", "The Wind", "Change"),
            Card("c-moon", "The Moon", "Intuition"),
        ],
    }


def seed_all(store: RecordStore, counselor_id: str) -> None:
    store.set(f"{templates_path(counselor_id)}/{DEMO_TEMPLATE_ID}",
              {**demo_template(), "counselorId": counselor_id})
    store.set(f"{followups_path(counselor_id)}/{DEMO_FOLLOWUP_ID}", demo_followup())
    for client_id, doc in demo_clients().items():
        store.set(f"{clients_path(counselor_id)}/{client_id}", doc)
    for item_id, doc in demo_products().items():
        store.set(f"{PRODUCTS_COLLECTION}/{item_id}", doc)
    for item_id, doc in demo_programs().items():
        store.set(f"{PROGRAMS_COLLECTION}/{item_id}", doc)
    logger.info("Seeded demo workspace for counselor '%s'", counselor_id)


def ensure_demo_data(store: RecordStore, counselor_id: str) -> bool:
    """Seed only when the counselor has no template yet.  Returns True when seeded."""
    if store.query(templates_path(counselor_id)):
        return False
    seed_all(store, counselor_id)
    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    print("🌱 Seeding demo follow-up data…")
    seed_all(RecordStore(settings.store.db_path), settings.app.counselor_id)
    print(f"✅ Done → {settings.store.db_path}")
