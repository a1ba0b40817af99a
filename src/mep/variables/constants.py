from dataclasses import dataclass

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_NO_SCRIPTS = 2


@dataclass
class Messages:
    intro = "Here are your event processor scripts,"
    prompt = (
        "Please choose a script to run and start watching for changes.\n"
        'Type a digit from the list and then press "enter":'
    )
    fix_hint = 'Please navigate to the "{folder}" folder and fix your script.'
    error_in = "There is an error in: {context}"
    folder_not_found = (
        'Scripts folder "{folder}" was not found. "mep" has created it and '
        "filled it with some example scripts for you."
    )
    folder_removed = (
        '"{folder}" folder is removed. Re-run "mep" to auto create it and '
        "fill it with example scripts."
    )
    folder_reset = '"{folder}" folder is reset with example scripts.'
    no_scripts = (
        'There are no event processor scripts found in "{folder}". '
        "Maybe put a couple?"
    )
    no_home = (
        '"mep" couldn\'t determine the location of your home directory, to help '
        'it please run it with "--home <absolute-path-to-your-home-directory>"'
    )
    stdin_closed = "Standard input was closed, there is no way to choose scripts anymore."


# lookup path of the function every inbound message is handed to
LISTENER_PATH = "midi.listen"
