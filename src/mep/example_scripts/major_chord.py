# Turns single notes into major triads.

INTERVALS = (0, 4, 7)


def listen(message):
    parsed = midi.parse(message)
    if parsed.type not in ("note_on", "note_off"):
        midi.send(message)
        return
    for interval in INTERVALS:
        note = parsed.note + interval
        if note <= 127:
            midi.send(parsed.copy(note=note).bytes())


midi.listen = listen
