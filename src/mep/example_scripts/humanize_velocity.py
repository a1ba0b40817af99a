# Nudges the velocity of every note on by a random amount.

SPREAD = 12


def listen(message):
    parsed = midi.parse(message)
    if parsed.type == "note_on" and parsed.velocity > 0:
        velocity = parsed.velocity + random.randint(-SPREAD, SPREAD)
        parsed = parsed.copy(velocity=min(max(velocity, 1), 127))
    midi.send(parsed.bytes())


midi.listen = listen
