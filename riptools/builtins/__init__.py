"""Built-in workspace tools: read, write, ls, grep and bash."""