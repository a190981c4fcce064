"""Serialize a finished asset kit into a website brief.

:func:`build_ecommerce_prompt` turns a :class:`GenerationResult` into a
plain-text brief listing every generated asset, ready to hand to a site
builder or a text model.
"""

from __future__ import annotations

from jewelkit.pipeline.models import GenerationResult, ObjectResult

_CATEGORY_TITLES = (
    ("ear", "Ear"),
    ("neck", "Neck"),
    ("wrist", "Wrist/Ring"),
)

_REQUIREMENTS = """WEBSITE REQUIREMENTS:
1. Homepage:
   - Hero section with rotating background assets
   - Featured products carousel
   - Category navigation (Earrings, Necklaces, Bracelets/Rings)
   - Testimonials section

2. Product Gallery:
   - Grid layout with studio shots as primary images
   - Quick view functionality
   - Filter by category and price range
   - Sort options (newest, price, popularity)

3. Product Details Page:
   - Image gallery with zoom functionality
   - Studio shot as main image
   - Model shots in thumbnail carousel
   - Size guide and material information
   - Related products section

4. Shopping Features:
   - Add to cart with size selection
   - Wishlist functionality
   - Shopping cart with quantity adjustment
   - Secure checkout process
   - Guest checkout option

5. Design Guidelines:
   - Color scheme: Elegant neutrals with gold accents
   - Typography: Modern serif for headings, clean sans-serif for body
   - Use background assets for:
     * Hero sections
     * Category headers
     * Newsletter signup backgrounds
     * Loading screens
   - Responsive design for all devices
   - Smooth animations and transitions
   - High-end, luxurious aesthetic

6. Additional Features:
   - Search functionality
   - Customer reviews and ratings
   - Size and care guides
   - Newsletter signup
   - Social media integration
   - Contact form for custom orders"""


def _piece_section(number: int, obj: ObjectResult) -> str:
    lines = [
        f"JEWELRY PIECE {number}:",
        "Studio Photography:",
        f"- {obj.studio_view or ''}",
    ]
    for category, title in _CATEGORY_TITLES:
        shots = obj.shots_for(category)
        lines.append("")
        lines.append(f"Model Shots - {title} ({len(shots)} images):")
        lines.extend(f"- {url}" for url in shots)
    return "\n".join(lines)


def build_ecommerce_prompt(result: GenerationResult) -> str:
    """Render *result* as an e-commerce website brief.

    Args:
        result: A (possibly partial) aggregate.

    Returns:
        The brief: background list, per-piece asset lists, site requirements
        and asset totals.
    """
    backgrounds = "\n".join(
        f"{i}. {url}" for i, url in enumerate(result.background_assets, start=1)
    )
    pieces = "\n\n".join(
        _piece_section(i, obj) for i, obj in enumerate(result.object_results, start=1)
    )
    studio_count = sum(1 for obj in result.object_results if obj.studio_view)

    return (
        "Create a modern e-commerce website for luxury jewelry with the following "
        "product images:\n\n"
        f"BACKGROUND ASSETS ({len(result.background_assets)} images):\n"
        f"{backgrounds}\n\n"
        f"PRODUCT CATALOG ({len(result.object_results)} jewelry pieces):\n\n"
        f"{pieces}\n\n"
        f"{_REQUIREMENTS}\n\n"
        f"TOTAL ASSETS: {len(result.all_urls())} images\n"
        f"- Background Assets: {len(result.background_assets)}\n"
        f"- Studio Shots: {studio_count}\n"
        f"- Model Shots: {result.model_shot_count}\n\n"
        "Note: All images are high-quality, professionally generated, and ready for "
        "immediate use in the e-commerce platform."
    )
