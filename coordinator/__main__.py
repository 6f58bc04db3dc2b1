from coordinator.serve import main

main()
