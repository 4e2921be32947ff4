FACT_CHECK_PROMPT = """
You are a careful health-information fact-checker reviewing a short social media video.

Original URL: {original_url}
Video URL: {video_url}
{media_note}

YOUR TASK:
1. Summarize what the video says in one or two sentences.
2. Only if the video makes an explicit health, medical, nutrition or wellness claim, fact-check that claim against established scientific evidence (WHO, CDC, NIH, peer-reviewed studies).
3. If no explicit health claim is made, summarize the content as the main claim, use the verdict "Unverified" and leave "sources" empty.

VERDICT GUIDELINES:
- "Accurate": Claim is supported by credible scientific evidence
- "Misleading": Claim has some truth but is exaggerated or missing context
- "False": Claim contradicts established scientific evidence
- "Unverified": Insufficient evidence to determine accuracy, or no health claim made

YOUR RESPONSE (Must be a single, valid JSON object and nothing else):
{{
  "mainClaim": "The primary health claim made in the video (1-2 sentences)",
  "verdict": "Accurate|Misleading|False|Unverified",
  "explanation": "Why this verdict was given (2-4 sentences)",
  "confidence": 0.85,
  "sources": [
    {{"title": "Source title", "url": "https://source-url.com", "publisher": "WHO|CDC|NIH|etc"}}
  ]
}}
"""

MEDIA_ATTACHED_NOTE = "The video file itself is attached. Base your analysis on what is said and shown in it."
URL_ONLY_NOTE = "The video file could not be attached. Work from the URLs above and state uncertainty where appropriate."


def build_fact_check_prompt(video_url: str, original_url: str, media_attached: bool) -> str:
    return FACT_CHECK_PROMPT.format(
        original_url=original_url,
        video_url=video_url,
        media_note=MEDIA_ATTACHED_NOTE if media_attached else URL_ONLY_NOTE,
    )
