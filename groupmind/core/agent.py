from groupmind.core.prompts import get_system_prompt
from groupmind.memory.context_builder import format_message


async def generate_response(oracle, batch, group_context, now, tz, addressed=False):
    """Ask the LLM what to do about a passed batch. Returns (tagged_text, latency_ms)."""
    # 1. Static system prompt (keeps the KV cache warm across turns)
    system = get_system_prompt()

    # 2. Volatile context, then the batch itself last
    addressing = ("You were addressed directly in this batch." if addressed
                  else "You were NOT addressed directly; only speak up if it clearly helps.")
    batch_text = "\n".join(format_message(m, tz) for m in batch)
    prompt = f"""[System context updated for this turn]
Current time: {now.astimezone(tz).strftime('%A, %B %d, %Y at %H:%M')} ({tz.key})

--- GROUP MEMORY ---
{group_context}
--- END GROUP MEMORY ---

--- NEW MESSAGES ---
{batch_text}
--- END NEW MESSAGES ---

{addressing}"""

    reply = await oracle.complete(system, prompt, temperature=0.3, max_tokens=600)
    return reply.text.strip(), reply.latency_ms
