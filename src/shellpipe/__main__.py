from shellpipe.main import main

main()
