from countsharp.cli import main

main()
