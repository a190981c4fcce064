"""Prompt policy for jewelry asset generation.

Two layers of prompt text exist:

1. **Type suffixes** applied server-side by ``POST /api/generate``.  Every
   generation request carries a ``type`` tag; ``background``, ``studio`` and
   ``model`` append a style clause to the caller's prompt, any other tag (or
   none) leaves the prompt untouched.
2. **Curated prompts** used by the orchestrator: five background prompts,
   one studio prompt and one template per model-shot category.

Usage
-----
::

    prompt = build_generation_prompt("Studio shot of a ring", "studio")
    # "Studio shot of a ring. Professional product photography with ..."
"""

from __future__ import annotations

from typing import Literal

GenerationType = Literal["background", "studio", "model", "standard"]
ModelShotCategory = Literal["ear", "neck", "wrist"]

STANDARD_TYPE = "standard"

# ---------------------------------------------------------------------------
# Server-side type suffixes.
# ---------------------------------------------------------------------------

TYPE_SUFFIXES: dict[str, str] = {
    "background": (
        "Extract color palette and create elegant, abstract background suitable "
        "for jewelry photography."
    ),
    "studio": "Professional product photography with perfect lighting and shadows.",
    "model": "Fashion photography style with focus on jewelry details and anchor points.",
}


def build_generation_prompt(prompt: str, generation_type: str | None) -> str:
    """Append the style clause for *generation_type* to *prompt*.

    Args:
        prompt: The caller's prompt text.
        generation_type: ``background``, ``studio``, ``model`` or anything
            else (including ``None``), which leaves the prompt unmodified.

    Returns:
        The prompt actually sent to the generation model.
    """
    suffix = TYPE_SUFFIXES.get(generation_type or "")
    if suffix is None:
        return prompt
    return f"{prompt}. {suffix}"


def storage_folder(generation_type: str | None) -> str:
    """Folder that receives the result of a generation of *generation_type*."""
    return f"processed/{generation_type}" if generation_type else "processed"


# ---------------------------------------------------------------------------
# Orchestrator prompts.
# ---------------------------------------------------------------------------

BACKGROUND_PROMPTS: tuple[str, ...] = (
    "Luxurious velvet texture in deep jewel tones, soft focus, elegant backdrop for "
    "high-end jewelry photography",
    "Minimalist marble surface with subtle gold veining, clean aesthetic, perfect for "
    "modern jewelry presentation",
    "Soft gradient sunset colors transitioning from rose gold to champagne, dreamy "
    "atmosphere for romantic jewelry",
    "Abstract geometric patterns with metallic accents, contemporary design suitable "
    "for statement jewelry pieces",
    "Natural silk fabric with gentle folds and highlights, sophisticated texture for "
    "classic jewelry photography",
)

_BACKGROUND_DIRECTIVE = (
    "Analyze the jewelry style from references and create a complementary background. "
    "No jewelry in the image, only background."
)

STUDIO_PROMPT = (
    "Transform jewelry to studio photography: clean white background, professional "
    "shadows, elegant highlights, product photography style"
)

MODEL_SHOT_CATEGORIES: tuple[ModelShotCategory, ...] = ("ear", "neck", "wrist")

MODEL_SHOT_PROMPTS: dict[str, str] = {
    "ear": "Show earring on model ear, close-up shot focusing on earlobe, elegant pose",
    "neck": (
        "Show necklace on model neck, close-up shot focusing on collarbone line, elegant pose"
    ),
    "wrist": (
        "Show bracelet/ring on model hand, close-up shot focusing on wrist/finger joint, "
        "elegant pose"
    ),
}

_MODEL_SHOT_DIRECTIVE = "Use elegant lighting and professional photography style."

SHOTS_PER_CATEGORY = 3


def background_prompt(base: str) -> str:
    """Full prompt for one background variant."""
    return f"{base}. {_BACKGROUND_DIRECTIVE}"


def model_shot_prompt(category: str) -> str:
    """Full prompt for one model shot of *category*.

    Raises:
        KeyError: If *category* is not one of ``ear``, ``neck``, ``wrist``.
    """
    return f"{MODEL_SHOT_PROMPTS[category]}. {_MODEL_SHOT_DIRECTIVE}"
