from panel_client.cli import main

main()
