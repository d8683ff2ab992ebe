from __future__ import annotations

from PIL import Image, ImageChops, ImageDraw, ImageEnhance, ImageFilter

# Fractional boxes are (x, y, w, h) of the canvas.
REFINE_MASK_BOX = (0.25, 0.375, 0.50, 0.25)
GUIDE_ROI = (0.29, 0.38, 0.42, 0.22)
LABEL_MASK_BOX = (0.25, 0.62, 0.50, 0.18)

PLACEMENTS = ("lower-center", "right-center", "center", "upper-center")
BLENDS = ("overlay", "multiply")


def frac_box(size: tuple[int, int], frac: tuple[float, float, float, float]) -> tuple[int, int, int, int]:
    """Convert a fractional (x, y, w, h) box to pixel (left, top, right, bottom)."""
    w, h = size
    fx, fy, fw, fh = frac
    left = int(w * fx)
    top = int(h * fy)
    return (left, top, left + max(1, int(w * fw)), top + max(1, int(h * fh)))


def fit_inside(img: Image.Image, max_w: int, max_h: int, enlarge: bool = False) -> Image.Image:
    iw, ih = img.size
    if iw <= 0 or ih <= 0:
        return img
    scale = min(max_w / iw, max_h / ih)
    if not enlarge:
        scale = min(scale, 1.0)
    nw, nh = max(1, int(round(iw * scale))), max(1, int(round(ih * scale)))
    if (nw, nh) == img.size:
        return img.copy()
    return img.resize((nw, nh), Image.Resampling.LANCZOS)


def _with_opacity(img: Image.Image, opacity: float) -> Image.Image:
    img = img.convert("RGBA")
    scale = max(0.0, min(1.0, opacity))
    if scale < 1.0:
        a = Image.eval(img.getchannel("A"), lambda px: int(px * scale))
        img.putalpha(a)
    return img


def canvas_composite(
    base: Image.Image,
    logo: Image.Image,
    max_width_ratio: float = 0.4,
    top_ratio: float = 0.4,
    opacity: float = 0.8,
) -> Image.Image:
    """
    Paste the logo centered horizontally with its top edge at top_ratio of the
    height; logo width is capped at max_width_ratio of the base width.
    """
    out = base.convert("RGBA")
    bw, bh = out.size
    logo = logo.convert("RGBA")
    lw = max(1, int(min(logo.width, bw * max_width_ratio)))
    lh = max(1, int(round(logo.height / logo.width * lw)))
    logo = _with_opacity(logo.resize((lw, lh), Image.Resampling.LANCZOS), opacity)
    x = max(0, (bw - lw) // 2)
    y = max(0, int(bh * top_ratio))
    out.alpha_composite(logo, dest=(x, y))
    return out


def edit_mask(
    size: tuple[int, int],
    box: tuple[float, float, float, float],
    feather: int = 0,
    rounded: bool = False,
) -> Image.Image:
    """
    Edit-endpoint mask: opaque black preserves pixels, transparent marks the
    editable hole. feather blurs the hole's edge.
    """
    x0, y0, x1, y1 = frac_box(size, box)
    alpha = Image.new("L", size, 255)
    draw = ImageDraw.Draw(alpha)
    if rounded:
        radius = max(1, int(min(x1 - x0, y1 - y0) * 0.2))
        draw.rounded_rectangle([(x0, y0), (x1 - 1, y1 - 1)], radius=radius, fill=0)
    else:
        draw.rectangle([(x0, y0), (x1 - 1, y1 - 1)], fill=0)
    if feather > 0:
        alpha = alpha.filter(ImageFilter.GaussianBlur(feather))
    mask = Image.new("RGBA", size, (0, 0, 0, 255))
    mask.putalpha(alpha)
    return mask


def feather_for(size: tuple[int, int]) -> int:
    return max(4, int(min(size) * 0.02))


def guide_image(base: Image.Image, logo: Image.Image, roi: tuple[float, float, float, float] = GUIDE_ROI) -> Image.Image:
    """The base with the logo fitted into and centered on the ROI."""
    out = base.convert("RGBA")
    x0, y0, x1, y1 = frac_box(out.size, roi)
    fitted = fit_inside(logo.convert("RGBA"), x1 - x0, y1 - y0, enlarge=True)
    x = x0 + (x1 - x0 - fitted.width) // 2
    y = y0 + (y1 - y0 - fitted.height) // 2
    out.alpha_composite(fitted, dest=(max(0, x), max(0, y)))
    return out


def placement_xy(placement: str, canvas: tuple[int, int], logo: tuple[int, int]) -> tuple[int, int]:
    pw, ph = canvas
    lw, lh = logo
    if placement == "right-center":
        x, y = int(pw * 0.7 - lw / 2), (ph - lh) // 2
    elif placement == "center":
        x, y = (pw - lw) // 2, (ph - lh) // 2
    elif placement == "upper-center":
        x, y = (pw - lw) // 2, int(ph * 0.25 - lh / 2)
    elif placement == "lower-center":
        x, y = (pw - lw) // 2, int(ph * 0.75 - lh / 2)
    else:
        raise ValueError(f"unknown placement '{placement}'")
    return (max(0, min(x, pw - lw)), max(0, min(y, ph - lh)))


def pure_composite(
    base: Image.Image,
    logo: Image.Image,
    placement: str = "lower-center",
    blend: str = "overlay",
    max_width_ratio: float = 0.15,
    max_height_ratio: float = 0.08,
    brightness: float = 0.85,
    saturation: float = 0.9,
) -> tuple[Image.Image, tuple[int, int, int, int]]:
    """
    Deterministic logo application: shrink the logo, ground it (slightly darker,
    slightly desaturated), blend it into the product surface.

    Returns the composite and the pixel box the logo occupies.
    """
    if blend not in BLENDS:
        raise ValueError(f"unknown blend '{blend}'")
    out = base.convert("RGBA")
    pw, ph = out.size
    logo = fit_inside(logo.convert("RGBA"), max(1, int(pw * max_width_ratio)), max(1, int(ph * max_height_ratio)))
    alpha = logo.getchannel("A")

    rgb = logo.convert("RGB")
    rgb = ImageEnhance.Brightness(rgb).enhance(brightness)
    rgb = ImageEnhance.Color(rgb).enhance(saturation)

    x, y = placement_xy(placement, (pw, ph), logo.size)
    box = (x, y, x + logo.width, y + logo.height)
    region = out.crop(box).convert("RGB")
    if blend == "multiply":
        blended = ImageChops.multiply(region, rgb)
    else:
        blended = ImageChops.overlay(region, rgb)

    patch = blended.convert("RGBA")
    patch.putalpha(out.crop(box).getchannel("A"))
    out.paste(patch, (x, y), alpha)
    return out, box
