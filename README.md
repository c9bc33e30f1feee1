# agenthub

Building blocks for a Slack hub that coordinates agent bots:

- **`agenthub.store`**: an encrypted key-value store for secrets, kept in a
  single file. Values are encrypted with AES-256-GCM under a key derived from
  a password with Argon2id. The file holds a JSON envelope with
  base64-encoded salt, nonce and ciphertext.
- **`agenthub.settings`**: a write-through configuration cache over any
  persister (the encrypted store is one). Reads come from memory. Writes go
  to the persister first, then to memory, and then the watchers registered
  for that key are called.
- **`agenthub.slash`**: parsing and formatting for `/agenthub` slash commands
  (`bind`, `list`, `remove`, `chatty`, or a task description with an optional
  `@botname`), and the interfaces the event handler depends on.
- **`agenthub.handler`**: dispatches Slack events, slash commands and
  messages to a bot registry, a task manager and an AI responder.

## Installation

Install the package with pip; its one dependency is `cryptography`. The
`test` extra adds `pytest`.

## Encrypted store

```python
from agenthub.store import open_store, KeyNotFoundError

password = "password"
store = open_store("~/.agenthub/store.enc", password)

store.set("slack_bot_token", "token")
store.get("slack_bot_token")          # "token"
store.keys()                          # ["slack_bot_token"]

store.set_resource_credential("r1", "api_key", "placeholder")
store.get_resource_credential("r1", "api_key")   # "placeholder"
store.delete_resource_credentials("r1")

try:
    store.get("missing")
except KeyNotFoundError:
    ...
```

A leading `~` in the path is expanded to the home directory. Opening a file
that does not exist gives an empty store with a fresh salt; the file is
written by the first `set` or `delete`, through a temporary file that is then
renamed into place. Every change rewrites the file with a new nonce.

An empty path or password, a wrong password, a damaged envelope or
undecodable contents raise `StoreError`. `KeyNotFoundError` is a subclass of
both `StoreError` and `KeyError`.

The lower-level helpers `derive_key(password, salt)`,
`encrypt(key, nonce, plaintext)` and `decrypt(key, nonce, ciphertext)` are
also available. `decrypt` raises `StoreError` when authentication fails.

## Reactive settings

```python
from agenthub.settings import Settings

settings = Settings(store)                # loads every persisted key
settings.seed("openai.model", "gpt-4o")   # kept in memory only, and only if unset

settings.watch("openai.model", lambda value: print("model is now", value))
settings.set("openai.model", "gpt-4o-mini")   # persisted, then the watcher runs
settings.get("unknown")                       # "" for missing keys
```

Any object with `set`, `delete`, `keys` and `get` methods can serve as the
persister. Watchers receive the new value, or `""` when the key is deleted.
A key can have several watchers. They run in the order they were registered,
outside the lock, so they may call `get`. `seed` ignores empty values.
The resource credential helpers work as on the store, except that
`get_resource_credential` returns `""` for a missing credential.

## Slash commands

```python
from agenthub.slash import parse_command, parse_bind, parse_task, format_bot_list, BotSummary

parse_command("bind 1.2.3.4:8080 mybot")   # "bind"
parse_command("fix the login bug")         # "task"

bind = parse_bind("bind 1.2.3.4:8080 mybot")
bind.host, bind.port, bind.name            # ("1.2.3.4", 8080, "mybot")

task = parse_task("fix the login bug @mybot")
task.description, task.bot_name            # ("fix the login bug", "mybot")

print(format_bot_list([BotSummary(name="bot1", host="1.2.3.4", port=8080, is_alive=True)]))
```

`parse_host_port` splits at the last colon, so `::1:9090` gives host `::1`.
A malformed command raises `CommandError` with a usage message: for example a
bot name outside `[a-z0-9-]+`, a missing host or port, or a port outside
1–65535.

## Event handling

`agenthub.handler.Handler(poster, deps, ack=None)` takes a `MessagePoster`
for replies, a `Deps` value and an optional acknowledgement callable.
`Deps` holds a `BotRegistry`, a `TaskManager`, an `AIChatter`, an
`OpenclawChecker`, optionally an `InboxEnqueuer` and an
`AgentChannelLookup`, and a `SlackConfig`. These are protocols; supply your
own implementations.

```python
from agenthub.handler import Handler, SocketEvent, EventType, SlashCommand

handler = Handler(poster, deps)
handler.run([
    SocketEvent(EventType.SLASH_COMMAND, SlashCommand(text="list", channel_id="C1")),
])
```

The handler works as follows:

- Slash commands are routed by sub-command; any other text becomes a task.
  Errors come back as `:x: Error: …` replies.
- `bind` checks the bot's health and registers it. When
  `SlackConfig.agenthub_url` and `registration_token` are set it sends the
  onboarding directive; otherwise, or if that fails, it asks the bot to answer
  only when mentioned.
- App mentions get an AI reply in the thread, or a greeting when the reply is
  empty or a configuration notice.
- A direct message from a person becomes a task. It is routed to the bot named
  in a leading `@name` or `@name:`, or to any available bot, and the text is
  queued in the assigned bot's inbox.
- Messages in a channel dedicated to an agent go straight to that agent's
  inbox.
- Messages with a subtype or sent by bots are ignored, so replies cannot loop
  back as new tasks.

## What this package does not do

It does not connect to Slack: there is no Socket Mode client or HTTP API
client, and `Handler.run` only consumes events you pass to it. It ships no
implementations of the bot registry, task manager, AI responder, health
checker or inbox, no web interface, and no command-line program.