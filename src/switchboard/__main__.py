from switchboard.shell import main

main()
