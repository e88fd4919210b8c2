from lanotifica.cli import main

main()
