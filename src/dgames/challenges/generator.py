"""
Puzzle content generation.

Calls the LLM messages API through the Anthropic SDK. Any API, transport or
parse failure falls back to a canned puzzle for the game type, so batch generation never
fails because the provider is down.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

import anthropic
import structlog
from sqlalchemy import func, select

from dgames.db.models import DailyChallenge, Game
from dgames.gamification.calendar import local_today

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from dgames.config import Settings

logger = structlog.get_logger()

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

GAME_TYPE_CRYPTOGRAM = "cryptogram"
GAME_TYPE_SORT = "sort_puzzle"
GAME_TYPE_NUMBER = "math_block"


# ---------------------------------------------------------------------------
# Difficulty tables
# ---------------------------------------------------------------------------


def difficulty_for_date(day: date) -> int:
    """Weekday schedule: easy Monday, medium midweek, harder Friday and weekends."""
    weekday = day.weekday()
    if weekday >= 5:
        return 4
    if weekday == 0:
        return 1
    if weekday == 4:
        return 3
    return 2


def quote_length(difficulty: int) -> str:
    return {1: "30-50", 2: "50-80", 3: "80-120", 4: "120-160", 5: "160-200"}.get(difficulty, "50-80")


def sort_container_count(difficulty: int) -> int:
    return {1: 3, 2: 4, 3: 5, 4: 6, 5: 7}.get(difficulty, 4)


def sort_items_per_container(difficulty: int) -> int:
    return 5 if difficulty >= 4 else 4


def number_grid_size(difficulty: int) -> int:
    return {1: 3, 2: 4, 3: 4, 4: 5, 5: 5}.get(difficulty, 4)


def number_target_sum(difficulty: int) -> int:
    return {1: 10, 2: 15, 3: 20, 4: 25, 5: 30}.get(difficulty, 15)


# ---------------------------------------------------------------------------
# Fallback content
# ---------------------------------------------------------------------------


def fallback_cryptogram() -> dict:
    return {
        "quote": "THE ONLY WAY TO DO GREAT WORK IS TO LOVE WHAT YOU DO",
        "author": "Steve Jobs",
        "category": "Inspiration",
        "cipher": dict(zip(
            "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
            "QWERTYUIOPASDFGHJKLZXCVBNM",
        )),
        "encoded": "ZIT GFSN VQN ZG RG UKTQZ VGKA OL ZG SGCT VIQZ NGX RG",
        "hints": [
            {"type": "letter", "original": "T", "encoded": "Z", "description": "Common starting letter"},
            {"type": "word", "word": "THE", "description": "Three letter word at start"},
            {"type": "letter", "original": "O", "encoded": "G", "description": "Common vowel"},
        ],
    }


def fallback_sort_puzzle(difficulty: int) -> dict:
    return {
        "colors": ["red", "blue", "green", "yellow"],
        "containers": [
            ["red", "blue", "green", "yellow"],
            ["blue", "green", "yellow", "red"],
            ["green", "yellow", "red", "blue"],
            ["yellow", "red", "blue", "green"],
            [],
            [],
        ],
        "solution_moves": 20,
        "difficulty_rating": difficulty,
    }


def fallback_number_puzzle(difficulty: int) -> dict:
    return {
        "grid_size": 4,
        "target_sum": 15,
        "initial_blocks": [
            {"value": 5, "row": 0, "col": 0, "fixed": True},
            {"value": 8, "row": 2, "col": 2, "fixed": True},
        ],
        "available_blocks": [1, 2, 3, 4, 5, 6, 7, 8, 9],
        "solution": [],
        "par_moves": 14,
    }


# ---------------------------------------------------------------------------
# Response parsing & challenge formatting
# ---------------------------------------------------------------------------


def extract_json(text: str) -> dict | None:
    """First ``{...}`` block in an LLM reply, parsed; None if it is not a JSON object."""
    match = _JSON_BLOCK.search(text)
    candidate = match.group(0) if match else text
    try:
        data = json.loads(candidate)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def format_cryptogram(data: dict) -> dict:
    quote = data.get("quote") or ""
    return {
        "content": {
            "encoded": data.get("encoded") or "",
            "author": data.get("author") or "Unknown",
            "category": data.get("category") or "General",
            "letter_count": len(re.sub(r"[^A-Z]", "", quote)),
        },
        "solution": {"quote": quote, "cipher": data.get("cipher") or {}},
        "hints": data.get("hints") or [],
        "metadata": {"word_count": len(quote.split())},
    }


def format_sort_puzzle(data: dict) -> dict:
    return {
        "content": {
            "colors": data.get("colors") or [],
            "containers": data.get("containers") or [],
        },
        "solution": {"moves": data.get("solution_moves", 0)},
        "hints": [],
        "metadata": {"difficulty_rating": data.get("difficulty_rating", 2)},
    }


def format_number_puzzle(data: dict) -> dict:
    return {
        "content": {
            "grid_size": data.get("grid_size", 4),
            "target_sum": data.get("target_sum", 15),
            "initial_blocks": data.get("initial_blocks") or [],
            "available_blocks": data.get("available_blocks") or [],
        },
        "solution": data.get("solution") or [],
        "hints": [],
        "metadata": {"par_moves": data.get("par_moves", 10)},
    }


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def cryptogram_prompt(difficulty: int, category: str | None = None) -> str:
    source = f"from the category: {category}" if category else "from any inspiring category"
    return (
        f"Generate a cryptogram puzzle for a mobile word game. Difficulty level: {difficulty}/5.\n\n"
        "Requirements:\n"
        f"1. Select a famous quote {source}\n"
        f"2. The quote should be {quote_length(difficulty)} characters\n"
        "3. Create a letter substitution cipher (each letter maps to exactly one other letter)\n"
        "4. Provide 3 progressive hints\n\n"
        "Respond with ONLY valid JSON with keys: quote (uppercase), author, category, "
        "cipher (original letter -> encoded letter), encoded, hints "
        "(list of {type, description, ...})."
    )


def sort_prompt(difficulty: int) -> str:
    extra = 1 if difficulty > 3 else 2
    return (
        "Generate a sort puzzle for a mobile game, like Ball Sort or Water Sort.\n\n"
        f"Parameters:\n- {sort_container_count(difficulty)} colors/item types\n"
        f"- {sort_items_per_container(difficulty)} items per color\n"
        f"- {extra} empty containers for sorting\n\n"
        "Create a shuffled starting state that is solvable but requires thought.\n\n"
        "Respond with ONLY valid JSON with keys: colors, containers (list of lists), "
        f"solution_moves, difficulty_rating ({difficulty})."
    )


def number_prompt(difficulty: int) -> str:
    size = number_grid_size(difficulty)
    return (
        "Generate a number block puzzle. Players place numbered blocks to make rows/columns "
        "sum to a target.\n\n"
        f"Parameters:\n- Grid size: {size}x{size}\n"
        f"- Target sum for each row/column: {number_target_sum(difficulty)}\n"
        f"- Difficulty: {difficulty}/5\n\n"
        "Respond with ONLY valid JSON with keys: grid_size, target_sum, initial_blocks "
        "(list of {value, row, col, fixed}), available_blocks, solution, par_moves."
    )


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class ContentGenerator:
    """Builds challenge payloads for each game type.

    Without an API key (and no injected client) every request goes straight
    to the fallback content.
    """

    def __init__(self, settings: Settings, client: anthropic.AsyncAnthropic | None = None) -> None:
        self.model = settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature
        if client is None and settings.llm_api_key:
            client = anthropic.AsyncAnthropic(
                api_key=settings.llm_api_key,
                base_url=settings.llm_base_url or None,
                timeout=settings.llm_timeout_seconds,
                max_retries=settings.llm_max_retries,
            )
        self.client = client

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()

    async def call_llm(self, prompt: str) -> str | None:
        """Text of the first text block in the reply, or None on any failure."""
        if self.client is None:
            logger.warning("llm_api_key_missing")
            return None

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as exc:
            logger.error("llm_api_error", status=exc.status_code, error=str(exc)[:500])
            return None
        except anthropic.APIError:
            logger.exception("llm_api_exception")
            return None

        texts = [block.text for block in response.content if block.type == "text"]
        return texts[0] if texts else None

    async def _generate(self, prompt: str, fallback: dict) -> tuple[dict, bool]:
        text = await self.call_llm(prompt)
        if text is not None:
            data = extract_json(text)
            if data is not None:
                return data, True
            logger.warning("llm_response_unparseable")
        return fallback, False

    async def generate(self, game_type: str, difficulty: int) -> tuple[dict, str] | None:
        """Challenge payload plus its source (``llm`` or ``fallback``).

        None for a game type without a content format.
        """
        if game_type == GAME_TYPE_CRYPTOGRAM:
            data, live = await self._generate(cryptogram_prompt(difficulty), fallback_cryptogram())
            formatted = format_cryptogram(data)
        elif game_type == GAME_TYPE_SORT:
            data, live = await self._generate(sort_prompt(difficulty), fallback_sort_puzzle(difficulty))
            formatted = format_sort_puzzle(data)
        elif game_type == GAME_TYPE_NUMBER:
            data, live = await self._generate(number_prompt(difficulty), fallback_number_puzzle(difficulty))
            formatted = format_number_puzzle(data)
        else:
            return None

        if not live:
            logger.warning("content_fallback_used", game_type=game_type, difficulty=difficulty)
        return formatted, "llm" if live else "fallback"


async def generate_daily_challenges(
    db: AsyncSession,
    generator: ContentGenerator,
    game: Game,
    days: int,
    tz: str,
    now: datetime | None = None,
) -> list[DailyChallenge]:
    """Create challenges for today and the next ``days - 1`` days.

    Dates that already have a challenge are skipped, so reruns are no-ops.
    Challenge numbers continue from the game's highest existing number.
    """
    start = local_today(now, tz)
    dates = [start + timedelta(days=offset) for offset in range(days)]

    existing = set((await db.execute(
        select(DailyChallenge.challenge_date).where(
            DailyChallenge.game_id == game.id,
            DailyChallenge.challenge_date.in_(dates),
        )
    )).scalars())
    last_number = (await db.execute(
        select(func.max(DailyChallenge.challenge_number)).where(DailyChallenge.game_id == game.id)
    )).scalar_one()
    next_number = (last_number or 0) + 1

    created: list[DailyChallenge] = []
    for day in dates:
        if day in existing:
            continue

        difficulty = difficulty_for_date(day)
        generated = await generator.generate(game.type, difficulty)
        if generated is None:
            logger.warning("content_type_unsupported", game=game.slug, game_type=game.type)
            break
        payload, source = generated

        challenge = DailyChallenge(
            game_id=game.id,
            challenge_date=day,
            challenge_number=next_number,
            difficulty=difficulty,
            content=payload["content"],
            solution=payload["solution"],
            hints=payload["hints"],
            challenge_metadata=payload["metadata"],
            is_active=True,
            generated_by=source,
        )
        db.add(challenge)
        created.append(challenge)
        next_number += 1

    await db.commit()
    logger.info("daily_challenges_generated", game=game.slug, count=len(created))
    return created


async def generate_for_all_games(
    db: AsyncSession,
    generator: ContentGenerator,
    days: int,
    tz: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Run generation for every active daily game. One game's failure does not stop the rest."""
    result = await db.execute(
        select(Game.id, Game.slug)
        .where(Game.is_active.is_(True), Game.daily_enabled.is_(True))
        .order_by(Game.id)
    )
    summary: dict[str, Any] = {}
    for game_id, slug in result.all():
        try:
            game = await db.get(Game, game_id)
            created = await generate_daily_challenges(db, generator, game, days, tz, now)
            summary[slug] = len(created)
        except Exception:
            await db.rollback()
            logger.exception("daily_challenge_generation_failed", game=slug)
            summary[slug] = "error"
    return summary
