"""Prompt builders for honey-bee disease diagnosis."""

def build_system_prompt() -> str:
    """Return the system prompt for the diagnostician."""
    return (
        "You are a Ph.D. bee pathologist specialising in honey-bee diseases and pests. "
        "You are careful and conservative: do not diagnose what the image does not show. "
        "Base every finding on what is visible in the photograph of bees, brood or comb."
    )


def build_user_prompt(language: str) -> str:
    """Return the user prompt, asking for free-text fields in `language`."""
    return (
        "Examine the following image. First decide whether it shows bees, brood or comb at all; "
        "if not, set subject_detected to false and leave the other fields empty. "
        "Otherwise name the most likely condition (for example varroa, American or European foulbrood, "
        "chalkbrood, nosema, deformed wing virus, or healthy), grade its severity, describe the visible "
        "signs, and list recommended treatments and preventative measures. "
        f"Write condition_name, description and every list item in {language}."
    )
