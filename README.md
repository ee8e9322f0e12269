# snapengines

Library and command-line tool for the inference engines shipped with an
inference snap. It reads and validates engine manifests (`engine.yaml`),
renders engine and version reports, loads an engine's runtime environment,
reads and writes configuration through a storage object you supply, and runs a
text chat session against an OpenAI-compatible server.

## Installation

```
pip install .
```

Python 3.10 or later is required. The package depends on PyYAML and httpx.

## Command line

```
snapengines --help
```

Commands:

- `version [--format yaml|json]`: print the snap version (from `SNAP_VERSION`)
  and the tool version; an empty version is shown as `unset`.
- `get [<key>]`: print one configuration value, or all values as YAML.
- `set <key=value>`: set a user configuration; must be run as root.
- `chat`: chat with the active engine's server through its OpenAI API.
- `debug validate-engines <manifest>...`: validate manifest files, printing
  `✅` or `❌` with the reason for each; exits with status 1 if any is invalid.
- `debug chat --base-url URL [--model NAME]`: open a chat session with the
  given server; without `--model` the server's single model is looked up.

```
snapengines debug validate-engines engines/my-engine/engine.yaml
snapengines debug chat --base-url http://localhost:8080/v1 --model my-model
```

`-v` / `--verbose` turns on verbose output and sets `VERBOSE=true` in the
environment.

In the chat, type a prompt and press ENTER. Typing `exit`, pressing CTRL-C or
ending input closes the session. Text between `<think>` and `</think>` is
shown in blue on a terminal.

## What the package does not do

The package has no configuration storage, no active-engine cache and no
machine hardware detection of its own. From the command line, `get`, `set`
and `chat` therefore stop with an error saying that configuration storage or
engine state is not available. The library functions that need them accept any
object with the methods described on `snapengines.context.Context`.

There is no engine scoring and no commands to show status, list, show, switch
or prune engines. `snapengines.reporting` can render such output for
`ScoredManifest` objects you have scored yourself.

## Engine manifests

Each engine lives in a directory named after the engine, holding an
`engine.yaml`:

```yaml
name: my-engine
description: Example engine
vendor: Example Vendor
grade: stable          # stable or devel
memory: 4G
disk-space: 10G
devices:
  anyof:
    - type: cpu
      architecture: amd64
      flags: [avx2]
components:
  - model-weights
configurations:
  engine: my-engine
```

Validation rejects unknown fields, requires `name`, `description`, `vendor`
and `grade`, checks that `name` matches the directory name, that `memory` and
`disk-space` are sizes such as `512M` or `1G`, that every configuration is a
boolean, number or string, and that each device only uses the fields its type,
bus and CPU architecture (`amd64` or `arm64`) allow. USB devices are not
supported.

## Library use

```python
from snapengines.manifest import load_manifest, load_manifests, ManifestNotFoundError
from snapengines.validation import validate, ValidationError

manifest = load_manifest("engines", "my-engine")
print(manifest.name, manifest.grade, manifest.components)

try:
    validate("engines/my-engine/engine.yaml")
except ValidationError as err:
    print(f"invalid manifest: {err}")
```

Other modules:

- `snapengines.reporting`: `engines_table`, `engines_json`, `format_engine`,
  `format_version`, `removable_components`, `format_components` and related
  helpers.
- `snapengines.environment`: `load_engine_environment`, `server_api_urls`,
  `set_engine_config`, `unset_engine_config`.
- `snapengines.settings`: `get_value`, `get_values`, `set_value`,
  `split_key_value`.
- `snapengines.chat`: `ChatClient` and `parse_sse_lines`.
- `snapengines.console`: `ProgressSpinner` and `confirmation_prompt`.
- `snapengines.suggestions`: hint texts for managing the snap's services.