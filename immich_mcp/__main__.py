from immich_mcp.server import main

main()
