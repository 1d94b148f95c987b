"""Instructions sent to the backends alongside the user's images."""

from __future__ import annotations

SUGGESTIONS_PROMPT = (
    "Analyze the facial features of the person in this image (face shape, forehead, "
    "jawline, chin, and so on). Based on that analysis, infer the face shape and suggest "
    "3-4 hairstyles that would flatter them. Give a brief rationale (1-2 sentences) for "
    "each suggestion. Format the answer clearly and legibly, with a heading for each style."
)

REFERENCE_FALLBACK = "the reference image's style"

IMAGE_ONLY_SUFFIX = "Generate only the new image, without additional text."


def build_edit_instruction(prompt: str, *, has_reference: bool) -> str:
    """Build the edit instruction for a hairstyle preview.

    Without a reference image the literal prompt is the whole description.
    With one, the second image's hairstyle leads and the prompt is secondary
    guidance; a blank prompt is replaced by ``REFERENCE_FALLBACK``.

    Args:
        prompt: User's hairstyle description, possibly empty.
        has_reference: Whether a reference image follows the subject image.

    Returns:
        Instruction text.
    """
    if not has_reference:
        return f"Apply this hairstyle to the person in the image: {prompt}"

    guidance = prompt.strip() or REFERENCE_FALLBACK
    return (
        "Using the hairstyle in the second image as the primary visual reference, "
        "apply a similar style to the person in the first image. "
        f"Use the following description as additional guidance: {guidance}."
    )
