def confirm(question, assume_yes=False, input_fn=input):
    """Ask a y/n question on the terminal; --yes style flags skip the prompt."""
    if assume_yes:
        return True
    try:
        answer = input_fn(f"{question} (y/n) ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")
