from __future__ import annotations

import re

PACKSHOT_RULES = (
    "Photorealistic studio packshot, isolated product, centered. "
    "Transparent background (alpha). No environment, no platform, no ground plane, no reflections, "
    "no duplicate objects, no hands/people, no extra text, no patterns, no watermarks. Product only."
)

STRICT_BACKGROUND_RULES = (
    "CRITICAL: the background MUST be fully transparent (alpha channel). "
    "Render ONLY the single product with NO environment, platform, ground plane, shadow catcher, "
    "backdrop or color fill behind it."
)

_SCENE_WORDS = ("background", "setting", "environment", "vibes", "beach", "home", "gym", "office")
_SCENE_RE = re.compile(r"\b(" + "|".join(_SCENE_WORDS) + r")\b", re.IGNORECASE)


def strip_scene(prompt_base: str) -> str:
    """
    Drop comma-separated fragments that describe a scene rather than the object:
    curated ideas like "mug with steam, office desk setting" keep only "mug with steam".
    """
    parts = [p.strip() for p in (prompt_base or "").split(",")]
    kept = [p for p in parts if p and not _SCENE_RE.search(p)]
    return ", ".join(kept) or (prompt_base or "").strip()


def packshot(prompt: str) -> str:
    return f"{prompt.strip()}\n\n{PACKSHOT_RULES}"


def strict_packshot(prompt: str) -> str:
    return f"{packshot(prompt)}\n\n{STRICT_BACKGROUND_RULES}"


def product_prompt(brand: str, product: str, branded: bool = True) -> str:
    """
    branded=True asks the model to draw the brand name as the product's mark;
    branded=False produces a clean, unbranded product for compositing.
    """
    subject = strip_scene(product)
    if branded:
        return (
            f"Single, isolated {subject}. "
            f'Apply the "{brand}" brand name once as a printed label, emboss or small badge, '
            "following surface curvature and perspective; keep it legible, clean, not tiled, "
            "with realistic material and lighting."
        )
    return (
        f"Single, isolated {subject}. "
        "Plain, unbranded surfaces with a clear flat area where a logo could be applied. "
        "No logos, no lettering."
    )


def refine_prompt(product: str) -> str:
    return (
        f"Refine the logo integration on this {product}. "
        "Make the existing logo look naturally applied to the product surface: "
        "adapt perspective, lighting and material response. "
        "Keep the logo artwork exactly as it is and clearly visible. "
        "Do not invent new graphics, text or decorations. "
        "Maintain transparent background. Product only."
    )


def guide_edit_prompt(product: str) -> str:
    return (
        f"This {product} shows a logo placed in the editable region. "
        "Integrate ONLY the exact logo artwork already visible there into the product surface: "
        "follow curvature, perspective and lighting so it looks printed or embossed. "
        "Do not add any other logos, icons, text, patterns or decorative elements; "
        "do not change anything outside the editable region."
    )


def label_edit_prompt(brand: str) -> str:
    return (
        f'Place the brand "{brand}" cleanly on the designated area. '
        "Respect perspective, curvature, and lighting; integrate as a printed label or small embossed mark. "
        "No repeating patterns; no oversized decal."
    )


def ideas_prompt(brand: str) -> str:
    return (
        f'Invent exactly TWO absurd but visually clear FAKE merch products for the brand "{brand}".\n'
        "Constraints:\n"
        "- Each should be a single, photographable object (e.g., flip-flops, hot sauce bottle, mug).\n"
        "- Avoid real trademarks and text-heavy labels.\n"
        "- Avoid weapons, drugs, alcohol, medical items, or anything unsafe.\n"
        "Return a JSON array and nothing else, for example:\n"
        '[{"label": "AI Flip-Flops", "prompt_base": "foam flip-flops with colorful straps"}, '
        '{"label": "Crypto Hot Sauce", "prompt_base": "small glass bottle of hot sauce with greenish hue"}]\n'
        "No prose, no markdown."
    )
